"""
Error taxonomy shared by the calculators and the HTTP layer.

Every error raised on purpose derives from ``AppError`` and is rendered by
``app_error_handler`` as::

    {"error": {"type": "...", "message": "...", "details": ...}}

Batch jobs never raise for a single failing item; they return a report
instead. The order totals aggregator returns a ``BestEffort`` value.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger


class AppError(Exception):
    error_type = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"type": self.error_type, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


class ValidationError(AppError):
    error_type = "VALIDATION_ERROR"
    status_code = 400


class AuthError(AppError):
    error_type = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(AppError):
    error_type = "FORBIDDEN"
    status_code = 403


class NotFoundError(AppError):
    error_type = "NOT_FOUND"
    status_code = 404


class ConstraintError(AppError):
    """A business rule (e.g. allocation percentages) would be violated."""

    error_type = "CONSTRAINT_ERROR"
    status_code = 400


class StoreError(AppError):
    """The underlying database call failed."""

    error_type = "DATABASE_ERROR"
    status_code = 500


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if not isinstance(exc, ValidationError):
        logger.error(
            f"API error [{exc.error_type}] {request.method} {request.url.path}: "
            f"{exc.message} {exc.details or ''}"
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


T = TypeVar("T")


@dataclass
class BestEffort(Generic[T]):
    """Outcome of a step whose failure must not fail the caller."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "BestEffort[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "BestEffort[T]":
        return cls(error=error)
