"""Notification model."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    """Notification type enumeration."""

    MATCH = "match"


class Notification(BaseModel):
    """A notification addressed to one recipient."""

    id: str
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
