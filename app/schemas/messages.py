"""Pydantic schemas for chat message submission."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas.notifications import NotificationItem


class SendResult(BaseModel):
    """Outcome of one send attempt. Throttling is an ordinary outcome, not an error."""

    admitted: bool
    message_id: str | None = Field(None, description="Id assigned by the transport when admitted.")
    retry_after_ms: int | None = Field(None, description="Remaining cooldown when throttled.")


class SendMessageRequest(BaseModel):
    sender_id: str = Field(..., description="Id of the authenticated sender.")
    text: str = Field(..., description="Raw message text; sanitized server-side.")


class SendMessageResponse(SendResult):
    notifications: list[NotificationItem] = Field(default_factory=list)
