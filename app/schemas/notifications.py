"""Pydantic schema for notifications returned to the client."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field

from app.adapters.notifier import Notification


class NotificationItem(BaseModel):
    message: str = Field(..., description="Text for the alert banner.")
    success: bool = Field(..., description="True for confirmations, False for warnings.")


def to_items(notifications: Iterable[Notification]) -> list[NotificationItem]:
    return [NotificationItem(message=n.message, success=n.success) for n in notifications]
