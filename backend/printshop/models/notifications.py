"""SQLModel model for in-app notifications."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    type: str = Field(index=True)  # e.g. expense_reminder
    title: str
    content: str
    linked_item_type: Optional[str] = None
    linked_item_id: Optional[int] = Field(default=None, index=True)
    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
