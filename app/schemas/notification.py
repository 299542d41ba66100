# app/schemas/notification.py
import uuid
from datetime import datetime, timezone
from typing import Literal

from sqlmodel import SQLModel, Field

NotificationType = Literal["info", "success", "warning", "error"]


class Notification(SQLModel):
    """
    Real-time notification pushed to a connected session.

    Never persisted: if the recipient is not connected when it is
    sent, it is dropped.
    """

    title: str
    message: str
    type: NotificationType = "info"
    order_id: uuid.UUID | None = None
    status: str | None = None
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
