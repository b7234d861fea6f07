"""
Notification routes, scoped to the calling user.

  GET    /api/notifications             – ?unread_only=true, newest first
  PATCH  /api/notifications/{id}        – set is_read
  POST   /api/notifications/read-all
  DELETE /api/notifications/{id}
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlmodel import col, select

from printshop.core.errors import NotFoundError
from printshop.core.security import CurrentUser, get_current_user
from printshop.models.notifications import Notification
from printshop.schemas.requests import NotificationUpdate
from printshop.schemas.responses import NotificationRead
from printshop.store import DataStore, get_store

notification_router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _own(store: DataStore, notification_id: int, user: CurrentUser) -> Notification:
    notification = store.get(Notification, notification_id)
    if notification is None or notification.user_id not in (user.id, None):
        raise NotFoundError("Notification not found", details={"id": notification_id})
    return notification


@notification_router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    stmt = select(Notification).where(
        (Notification.user_id == user.id) | (col(Notification.user_id).is_(None))
    )
    if unread_only:
        stmt = stmt.where(Notification.is_read == False)  # noqa: E712
    stmt = stmt.order_by(col(Notification.created_at).desc(), col(Notification.id).desc())
    return store.fetch_all(stmt.limit(limit))


@notification_router.post("/read-all")
def mark_all_read(
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    unread = store.fetch_all(
        select(Notification).where(
            (Notification.user_id == user.id) | (col(Notification.user_id).is_(None)),
            Notification.is_read == False,  # noqa: E712
        )
    )
    for n in unread:
        n.is_read = True
    if unread:
        store.save(*unread)
    return {"status": "ok", "updated": len(unread)}


@notification_router.patch("/{notification_id}", response_model=NotificationRead)
def update_notification(
    notification_id: int,
    body: NotificationUpdate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    notification = _own(store, notification_id, user)
    notification.is_read = body.is_read
    store.save(notification)
    return notification


@notification_router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    store.delete(_own(store, notification_id, user))
    return {"status": "deleted", "id": notification_id}
