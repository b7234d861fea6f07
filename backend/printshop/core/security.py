"""
Request identity and role checks.

Session handling lives in front of this service; requests arrive with the
caller's identity in ``X-User-Id`` / ``X-User-Role``. With AUTH_ENABLED off
every request runs as the configured default user.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from printshop.core.config import settings
from printshop.core.errors import AuthError, ForbiddenError

ROLES = ("admin", "manager", "staff")


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    if not settings.AUTH_ENABLED:
        return CurrentUser(
            id=x_user_id or settings.DEFAULT_USER_ID,
            role=(x_user_role or settings.DEFAULT_USER_ROLE).lower(),
        )
    if not x_user_id:
        raise AuthError("Authentication required")
    role = (x_user_role or "staff").lower()
    if role not in ROLES:
        raise AuthError(f"Unknown role '{role}'")
    return CurrentUser(id=x_user_id, role=role)


def require_roles(*roles: str):
    """Dependency factory: only the given roles may call the route."""

    def _check(
        x_user_id: Optional[str] = Header(default=None),
        x_user_role: Optional[str] = Header(default=None),
    ) -> CurrentUser:
        user = get_current_user(x_user_id, x_user_role)
        if user.role not in roles:
            raise ForbiddenError(
                f"Only {' and '.join(roles)} users can perform this action"
            )
        return user

    return _check


def verify_cron_token(authorization: Optional[str] = Header(default=None)) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Authentication required to access this endpoint")
    token = authorization[len("Bearer "):]
    if settings.CRON_SECRET and token != settings.CRON_SECRET:
        raise AuthError("Invalid cron token")
