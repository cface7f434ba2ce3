"""Durable record that a match formed."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MatchEventStatus(str, Enum):
    """Processing state of a match event."""

    PENDING = "pending"  # Conversation not provisioned yet
    PROCESSED = "processed"  # Conversation provisioned, notifications attempted


class MatchEvent(BaseModel):
    """
    Outbox record written together with the match itself.

    Conversation provisioning and notification dispatch consume it, so a
    failure in either leaves the event pending for a later retry instead of
    touching the match.
    """

    id: str
    participant_low: str
    participant_high: str
    status: MatchEventStatus = MatchEventStatus.PENDING
    attempts: int = 0
    conversation_id: Optional[str] = None
    last_error: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
