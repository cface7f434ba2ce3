"""SQLAlchemy implementations of the record store ports.

Unique-constraint hits are translated to domain errors here so callers never
see driver exceptions.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, sessionmaker

from matchgate.models.action import Action, ActionKind, MatchedUser
from matchgate.models.conversation import Conversation, canonical_pair
from matchgate.models.match_event import MatchEvent, MatchEventStatus
from matchgate.models.notification import Notification
from matchgate.utils.database import (
    ActionDB,
    ConversationDB,
    MatchEventDB,
    NotificationDB,
    ProfileDB,
    session_scope,
    utcnow,
)
from matchgate.utils.errors import ConflictError, DuplicateActionError
from matchgate.utils.logging import get_logger

logger = get_logger(__name__)


def _pair_filter(first_id: str, second_id: str):
    """Both directed rows of a pair."""
    return or_(
        and_(ActionDB.actor_id == first_id, ActionDB.target_id == second_id),
        and_(ActionDB.actor_id == second_id, ActionDB.target_id == first_id),
    )


def _likes_in_window(actor_id: str, since: datetime, until: Optional[datetime] = None):
    query = (
        select(func.count())
        .select_from(ActionDB)
        .where(
            ActionDB.actor_id == actor_id,
            ActionDB.kind == ActionKind.LIKE.value,
            ActionDB.created_at >= since,
        )
    )
    if until is not None:
        query = query.where(ActionDB.created_at < until)
    return query


def _action_row(action: Action) -> ActionDB:
    return ActionDB(
        id=action.id,
        actor_id=action.actor_id,
        target_id=action.target_id,
        kind=action.kind.value,
        is_matched=action.is_matched,
        matched_at=action.matched_at,
        created_at=action.created_at,
    )


class SqlProfileStore:
    """Profile lookups against the `profiles` table."""

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def exists(self, user_id: str) -> bool:
        with session_scope(self._session_factory, "profiles.exists") as session:
            return session.get(ProfileDB, user_id) is not None

    def display_name(self, user_id: str) -> Optional[str]:
        with session_scope(self._session_factory, "profiles.display_name") as session:
            profile = session.get(ProfileDB, user_id)
            return profile.name if profile else None


class SqlActionStore:
    """Directed actions in the `actions` table."""

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def get(self, actor_id: str, target_id: str) -> Optional[Action]:
        with session_scope(self._session_factory, "actions.get") as session:
            row = session.scalar(
                select(ActionDB).where(ActionDB.actor_id == actor_id, ActionDB.target_id == target_id)
            )
            return Action.model_validate(row) if row else None

    def count_likes_since(self, actor_id: str, since: datetime, until: Optional[datetime] = None) -> int:
        """Count likes by `actor_id` created in `[since, until)`."""
        with session_scope(self._session_factory, "actions.count_likes") as session:
            return int(session.scalar(_likes_in_window(actor_id, since, until)) or 0)

    def insert(self, action: Action) -> Action:
        """
        Insert a new action.

        Raises:
            DuplicateActionError: If the ordered pair already has an action.
        """
        try:
            with session_scope(self._session_factory, "actions.insert") as session:
                row = _action_row(action)
                session.add(row)
                session.flush()
                return Action.model_validate(row)
        except IntegrityError as e:
            raise DuplicateActionError(details={"actor_id": action.actor_id, "target_id": action.target_id}) from e

    def insert_like(self, action: Action, since: datetime, until: datetime, limit: int) -> Optional[int]:
        """
        Insert a like unless the actor already has `limit` likes in `[since, until)`.

        The count and the insert share one transaction, and the actor's
        profile row is locked `FOR UPDATE` first, so concurrent likes by the
        same actor are admitted one at a time. SQLite has no row locks but
        allows a single writer, so a racing transaction fails instead.

        Returns:
            Optional[int]: Likes in the window including this one, or None if
            the limit was already reached and nothing was written.

        Raises:
            DuplicateActionError: If the ordered pair already has an action.
        """
        try:
            with session_scope(self._session_factory, "actions.insert_like") as session:
                session.execute(select(ProfileDB.id).where(ProfileDB.id == action.actor_id).with_for_update())
                used = int(session.scalar(_likes_in_window(action.actor_id, since, until)) or 0)
                if used >= limit:
                    return None
                session.add(_action_row(action))
                session.flush()
                return used + 1
        except IntegrityError as e:
            raise DuplicateActionError(details={"actor_id": action.actor_id, "target_id": action.target_id}) from e

    def promote_match(self, actor_id: str, target_id: str, matched_at: datetime) -> Optional[MatchEvent]:
        """
        Flip both like rows of a pair to matched and record a match event.

        Runs in one transaction with the rows locked where the backend
        supports it. Only rows still unmatched are flipped, so when two
        callers race for the same pair only one of them gets the event back.
        A caller that loses on the `match_events` unique constraint has its
        transaction rolled back and gets None.

        Returns:
            Optional[MatchEvent]: The new event, or None when the pair is not
            mutual or the match had already been formed.
        """
        low, high = canonical_pair(actor_id, target_id)
        try:
            with session_scope(self._session_factory, "actions.promote_match") as session:
                rows = session.scalars(select(ActionDB).where(_pair_filter(low, high)).with_for_update()).all()
                likes = [row for row in rows if row.kind == ActionKind.LIKE.value]
                if len(likes) != 2 or all(row.is_matched for row in likes):
                    return None

                for row in likes:
                    if not row.is_matched:
                        row.is_matched = True
                        row.matched_at = matched_at

                if self._event_exists(session, low, high):
                    logger.warning("Match event already recorded for pair", participant_low=low, participant_high=high)
                    return None

                event = MatchEventDB(
                    id=str(uuid.uuid4()),
                    participant_low=low,
                    participant_high=high,
                    status=MatchEventStatus.PENDING.value,
                    attempts=0,
                    created_at=matched_at,
                )
                session.add(event)
                session.flush()
                return MatchEvent.model_validate(event)
        except IntegrityError:
            logger.warning("Match event recorded concurrently", participant_low=low, participant_high=high)
            return None

    @staticmethod
    def _event_exists(session: Session, low: str, high: str) -> bool:
        query = select(MatchEventDB.id).where(
            MatchEventDB.participant_low == low, MatchEventDB.participant_high == high
        )
        return session.scalar(query) is not None

    def find_unmatched_mutual_likes(self, limit: int = 100) -> List[Tuple[str, str]]:
        """Pairs where both users liked each other but a row is still unmatched."""
        forward = aliased(ActionDB)
        reverse = aliased(ActionDB)
        query = (
            select(forward.actor_id, forward.target_id)
            .join(
                reverse,
                and_(reverse.actor_id == forward.target_id, reverse.target_id == forward.actor_id),
            )
            .where(
                forward.kind == ActionKind.LIKE.value,
                reverse.kind == ActionKind.LIKE.value,
                forward.actor_id < forward.target_id,
                or_(forward.is_matched.is_(False), reverse.is_matched.is_(False)),
            )
            .order_by(forward.created_at)
            .limit(limit)
        )
        with session_scope(self._session_factory, "actions.find_unmatched_mutual") as session:
            return [(row[0], row[1]) for row in session.execute(query).all()]

    def count_matched(self, user_id: str) -> int:
        """Number of counterparts `user_id` has matched with."""
        query = (
            select(func.count())
            .select_from(ActionDB)
            .where(ActionDB.actor_id == user_id, ActionDB.is_matched.is_(True))
        )
        with session_scope(self._session_factory, "actions.count_matched") as session:
            return int(session.scalar(query) or 0)

    def list_matched(self, user_id: str, limit: int = 20, offset: int = 0) -> List[MatchedUser]:
        """Counterparts `user_id` has matched with, most recent first."""
        with session_scope(self._session_factory, "actions.list_matched") as session:
            rows = session.scalars(
                select(ActionDB)
                .where(ActionDB.actor_id == user_id, ActionDB.is_matched.is_(True))
                .order_by(ActionDB.matched_at.desc())
                .limit(limit)
                .offset(offset)
            ).all()
            if not rows:
                return []

            counterpart_ids = [row.target_id for row in rows]
            names: Dict[str, Optional[str]] = {
                profile.id: profile.name
                for profile in session.scalars(select(ProfileDB).where(ProfileDB.id.in_(counterpart_ids)))
            }
            conversations: Dict[str, str] = {}
            for conversation in session.scalars(
                select(ConversationDB).where(
                    or_(ConversationDB.participant_low == user_id, ConversationDB.participant_high == user_id)
                )
            ):
                other = (
                    conversation.participant_high
                    if conversation.participant_low == user_id
                    else conversation.participant_low
                )
                conversations[other] = conversation.id

            return [
                MatchedUser(
                    user_id=row.target_id,
                    name=names.get(row.target_id),
                    matched_at=row.matched_at,
                    conversation_id=conversations.get(row.target_id),
                )
                for row in rows
            ]


class SqlConversationStore:
    """Pair-keyed conversations in the `conversations` table."""

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def get_by_pair(self, participant_low: str, participant_high: str) -> Optional[Conversation]:
        with session_scope(self._session_factory, "conversations.get_by_pair") as session:
            row = session.scalar(
                select(ConversationDB).where(
                    ConversationDB.participant_low == participant_low,
                    ConversationDB.participant_high == participant_high,
                )
            )
            return Conversation.model_validate(row) if row else None

    def create(self, participant_low: str, participant_high: str) -> Conversation:
        """
        Insert a conversation for the pair.

        Raises:
            ConflictError: If the pair already has a conversation.
        """
        now = utcnow()
        try:
            with session_scope(self._session_factory, "conversations.create") as session:
                row = ConversationDB(
                    id=str(uuid.uuid4()),
                    participant_low=participant_low,
                    participant_high=participant_high,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.flush()
                return Conversation.model_validate(row)
        except IntegrityError as e:
            raise ConflictError(
                "Conversation already exists for this pair",
                details={"participant_low": participant_low, "participant_high": participant_high},
            ) from e


class SqlNotificationSink:
    """Notifications in the `notifications` table."""

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def create(self, notification: Notification) -> Notification:
        with session_scope(self._session_factory, "notifications.create") as session:
            row = NotificationDB(
                id=notification.id,
                recipient_id=notification.recipient_id,
                type=notification.type.value,
                title=notification.title,
                message=notification.message,
                payload=notification.payload,
                is_read=notification.is_read,
                created_at=notification.created_at,
            )
            session.add(row)
            session.flush()
            return Notification.model_validate(row)

    def list_for(
        self, recipient_id: str, limit: int = 20, offset: int = 0, unread_only: bool = False
    ) -> List[Notification]:
        query = select(NotificationDB).where(NotificationDB.recipient_id == recipient_id)
        if unread_only:
            query = query.where(NotificationDB.is_read.is_(False))
        query = query.order_by(NotificationDB.created_at.desc()).limit(limit).offset(offset)
        with session_scope(self._session_factory, "notifications.list") as session:
            return [Notification.model_validate(row) for row in session.scalars(query)]

    def unread_count(self, recipient_id: str) -> int:
        query = (
            select(func.count())
            .select_from(NotificationDB)
            .where(NotificationDB.recipient_id == recipient_id, NotificationDB.is_read.is_(False))
        )
        with session_scope(self._session_factory, "notifications.unread_count") as session:
            return int(session.scalar(query) or 0)


class SqlMatchEventLog:
    """Match event outbox in the `match_events` table."""

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def pending(self, limit: int = 100) -> List[MatchEvent]:
        query = (
            select(MatchEventDB)
            .where(MatchEventDB.status == MatchEventStatus.PENDING.value)
            .order_by(MatchEventDB.created_at)
            .limit(limit)
        )
        with session_scope(self._session_factory, "match_events.pending") as session:
            return [MatchEvent.model_validate(row) for row in session.scalars(query)]

    def mark_processed(self, event_id: str, conversation_id: str) -> None:
        with session_scope(self._session_factory, "match_events.mark_processed") as session:
            row = session.get(MatchEventDB, event_id)
            if row is None:
                logger.warning("Match event not found", event_id=event_id)
                return
            row.status = MatchEventStatus.PROCESSED.value
            row.conversation_id = conversation_id
            row.attempts = (row.attempts or 0) + 1
            row.last_error = None
            row.processed_at = utcnow()

    def record_failure(self, event_id: str, error: str) -> None:
        with session_scope(self._session_factory, "match_events.record_failure") as session:
            row = session.get(MatchEventDB, event_id)
            if row is None:
                logger.warning("Match event not found", event_id=event_id)
                return
            row.attempts = (row.attempts or 0) + 1
            row.last_error = error
