"""Ports (interfaces) the matching gate depends on.

Each collaborator is a small keyed CRUD contract so the gate can run against
the SQLAlchemy stores in production and fakes in tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from matchgate.models.action import Action, MatchedUser
from matchgate.models.conversation import Conversation
from matchgate.models.match_event import MatchEvent
from matchgate.models.notification import Notification


class IdentityResolver(Protocol):
    """Turns a caller credential into a user id."""

    def resolve(self, token: Optional[str]) -> str:
        ...


class ProfileStore(Protocol):
    """Read access to user profiles."""

    def exists(self, user_id: str) -> bool:
        ...

    def display_name(self, user_id: str) -> Optional[str]:
        ...


class ActionStore(Protocol):
    """Storage of directed like/pass actions."""

    def get(self, actor_id: str, target_id: str) -> Optional[Action]:
        ...

    def count_likes_since(self, actor_id: str, since: datetime, until: Optional[datetime] = None) -> int:
        ...

    def insert(self, action: Action) -> Action:
        """Raises DuplicateActionError when the ordered pair already has an action."""
        ...

    def insert_like(self, action: Action, since: datetime, until: datetime, limit: int) -> Optional[int]:
        """Atomically count likes in `[since, until)` and insert below `limit`; None when full."""
        ...

    def promote_match(self, actor_id: str, target_id: str, matched_at: datetime) -> Optional[MatchEvent]:
        ...

    def find_unmatched_mutual_likes(self, limit: int) -> List[Tuple[str, str]]:
        ...

    def count_matched(self, user_id: str) -> int:
        ...

    def list_matched(self, user_id: str, limit: int, offset: int) -> List[MatchedUser]:
        ...


class ConversationStore(Protocol):
    """Storage of pair-keyed conversations."""

    def get_by_pair(self, participant_low: str, participant_high: str) -> Optional[Conversation]:
        ...

    def create(self, participant_low: str, participant_high: str) -> Conversation:
        """Raises ConflictError when the pair already has a conversation."""
        ...


class NotificationSink(Protocol):
    """Write side of notifications plus the recipient's listing."""

    def create(self, notification: Notification) -> Notification:
        ...

    def list_for(self, recipient_id: str, limit: int, offset: int, unread_only: bool) -> List[Notification]:
        ...

    def unread_count(self, recipient_id: str) -> int:
        ...


class MatchEventLog(Protocol):
    """Outbox of match events."""

    def pending(self, limit: int) -> List[MatchEvent]:
        ...

    def mark_processed(self, event_id: str, conversation_id: str) -> None:
        ...

    def record_failure(self, event_id: str, error: str) -> None:
        ...
