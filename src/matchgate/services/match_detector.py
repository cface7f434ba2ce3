"""Mutual-like detection."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import sentry_sdk

from matchgate.models.action import Action, ActionKind
from matchgate.models.match_event import MatchEvent
from matchgate.services.ports import ActionStore
from matchgate.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchDecision:
    """Whether the pair ended matched, and the event if this call formed it."""

    matched: bool
    event: Optional[MatchEvent] = None

    @property
    def formed_here(self) -> bool:
        return self.event is not None


class MatchDetector:
    """
    Decides whether a like completes a mutual match.

    The reciprocal like is looked up before the new like is written and
    looked up again after, inside the transaction that flips both rows. The
    second look catches a reciprocal like that committed between the two, so
    two users liking each other at nearly the same instant still match.
    """

    def __init__(self, actions: ActionStore) -> None:
        self._actions = actions

    def find_reciprocal(self, actor_id: str, target_id: str) -> Optional[Action]:
        """Return the target's like on the actor, if there is one."""
        reciprocal = self._actions.get(target_id, actor_id)
        if reciprocal is not None and reciprocal.kind == ActionKind.LIKE:
            return reciprocal
        return None

    def settle(self, actor_id: str, target_id: str, now: datetime) -> MatchDecision:
        """
        Promote the pair to matched if both directions are likes.

        Call after the actor's like is recorded. Both action rows are set to
        `is_matched = True, matched_at = now` together.

        Args:
            actor_id (str): User whose like was just recorded.
            target_id (str): User they liked.
            now (datetime): Match timestamp.

        Returns:
            MatchDecision: The resulting match state.
        """
        with sentry_sdk.start_span(op="match.settle", name=f"{actor_id} -> {target_id}") as span:
            event = self._actions.promote_match(actor_id, target_id, now)
            if event is not None:
                logger.info(
                    "Match formed",
                    actor_id=actor_id,
                    target_id=target_id,
                    event_id=event.id,
                )
                span.set_data("result", "formed")
                return MatchDecision(matched=True, event=event)

            own = self._actions.get(actor_id, target_id)
            matched = bool(own and own.is_matched)
            span.set_data("result", "already_matched" if matched else "no_match")
            return MatchDecision(matched=matched)
