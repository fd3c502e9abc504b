"""Transient notification shown to the operator."""

from datetime import datetime

from pydantic import BaseModel, Field

from cidash.entities.enums import NotificationType
from cidash.utils.datetime import utc_now


class Notification(BaseModel):
    """In-app notification, the terminal equivalent of a toast."""

    type: NotificationType = Field(..., description="Severity of the notification")
    title: str = Field(..., description="Notification title")
    message: str = Field(default="", description="Notification message body")
    created_at: datetime = Field(default_factory=utc_now)
