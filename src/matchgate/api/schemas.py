"""Request and response bodies of the HTTP API."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from matchgate.models.action import MatchedUser
from matchgate.models.notification import Notification


class ActionRequest(BaseModel):
    """Body of `POST /actions`."""

    target_id: str = Field(alias="targetId")
    kind: str = "like"

    model_config = ConfigDict(populate_by_name=True)


class ActionResponse(BaseModel):
    accepted: bool
    matched: bool
    remaining: int
    limit: int
    conversation_id: Optional[str] = None


class RemainingResponse(BaseModel):
    remaining: int
    used: int
    limit: int
    resets_at: datetime


class MatchesResponse(BaseModel):
    matches: List[MatchedUser]
    total: int = Field(description="All matches of the caller, not just this page.")


class NotificationsResponse(BaseModel):
    notifications: List[Notification]
    unread_count: int
    has_more: bool
