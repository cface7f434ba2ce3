"""Action model for likes and passes."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    """Kind of action one user takes on another."""

    LIKE = "like"
    PASS = "pass"


class Action(BaseModel):
    """
    A directed like/pass from `actor_id` to `target_id`.

    At most one Action exists per ordered pair; the reverse direction is a
    separate record. `is_matched` is only true once both directions are likes.
    """

    id: str
    actor_id: str
    target_id: str
    kind: ActionKind
    is_matched: bool = False
    matched_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MatchedUser(BaseModel):
    """A counterpart the user has matched with."""

    user_id: str
    name: Optional[str] = None
    matched_at: Optional[datetime] = None
    conversation_id: Optional[str] = None


class QuotaUsage(BaseModel):
    """Likes used and left in the caller's current quota window."""

    used: int
    remaining: int
    limit: int
    window_start: datetime
    resets_at: datetime = Field(description="UTC instant the next window opens.")
