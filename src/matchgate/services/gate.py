"""The matching gate: accepts or rejects likes and passes, forming matches."""

import uuid
from datetime import datetime
from typing import Callable, ContextManager

import sentry_sdk

from matchgate.models.action import Action, ActionKind, QuotaUsage
from matchgate.models.conversation import canonical_pair
from matchgate.models.outcome import ActionResult, GateOutcome, GateState
from matchgate.services.match_detector import MatchDetector
from matchgate.services.match_events import MatchEventProcessor, MatchFollowUp
from matchgate.services.ports import ActionStore
from matchgate.services.quota import Clock, QuotaTracker, system_clock, to_naive_utc
from matchgate.services.validator import ActionValidator
from matchgate.utils.errors import MatchGateError
from matchgate.utils.locks import pair_lock
from matchgate.utils.logging import get_logger, log_context

logger = get_logger(__name__)

PairLock = Callable[[str, str], ContextManager[bool]]


class MatchingGate:
    """
    Single-pass state machine for one like/pass request.

    VALIDATING, then QUOTA_CHECK and MATCH_CHECK for likes, then RECORDING,
    then PROVISIONING and NOTIFYING when a match formed. There is no retry
    inside the gate; rejections raise the error for their terminal outcome.
    """

    def __init__(
        self,
        validator: ActionValidator,
        quota: QuotaTracker,
        detector: MatchDetector,
        actions: ActionStore,
        processor: MatchEventProcessor,
        clock: Clock = system_clock,
        lock: PairLock = pair_lock,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._validator = validator
        self._quota = quota
        self._detector = detector
        self._actions = actions
        self._processor = processor
        self._clock = clock
        self._lock = lock
        self._id_factory = id_factory

    def submit(self, actor_id: str, target_id: str, kind: object) -> ActionResult:
        """
        Run a like or pass through the gate.

        Args:
            actor_id (str): The resolved caller.
            target_id (str): The user being liked or passed.
            kind (object): "like" or "pass".

        Returns:
            ActionResult: The accepted outcome with the caller's remaining likes.

        Raises:
            ValidationError, SelfActionError, NotFoundError: Rejected in validation.
            QuotaExceededError: Daily like limit reached.
            DuplicateActionError: The ordered pair already has an action.
            TransientStoreError: The record store failed; nothing is retried.
        """
        with log_context(actor_id=actor_id, target_id=target_id), sentry_sdk.start_span(
            op="gate.submit", name=str(kind)
        ) as span:
            try:
                result = self._run(actor_id, target_id, kind)
            except MatchGateError as e:
                if e.outcome is not None:
                    logger.info("Action rejected", outcome=e.outcome.value, reason=e.message)
                    span.set_data("outcome", e.outcome.value)
                raise
            self._enter(GateState.RESPONDED)
            logger.info("Action accepted", outcome=result.outcome.value, remaining=result.remaining)
            span.set_data("outcome", result.outcome.value)
            return result

    def remaining(self, actor_id: str) -> QuotaUsage:
        """Report the caller's quota without acting."""
        return self._quota.usage(actor_id)

    def _run(self, actor_id: str, target_id: str, kind: object) -> ActionResult:
        self._enter(GateState.VALIDATING)
        action_kind = self._validator.validate(actor_id, target_id, kind)
        now = to_naive_utc(self._clock())

        if action_kind == ActionKind.PASS:
            usage = self._quota.usage(actor_id)
            self._enter(GateState.RECORDING)
            self._actions.insert(self._new_action(actor_id, target_id, ActionKind.PASS, now))
            return ActionResult(
                outcome=GateOutcome.ACCEPTED_NO_MATCH,
                remaining=usage.remaining,
                limit=usage.limit,
            )

        self._enter(GateState.QUOTA_CHECK)
        usage = self._quota.check(actor_id)

        self._enter(GateState.MATCH_CHECK)
        reciprocal = self._detector.find_reciprocal(actor_id, target_id)
        # A like answering an existing like is recorded already matched
        action = self._new_action(actor_id, target_id, ActionKind.LIKE, now, matched=reciprocal is not None)

        low, high = canonical_pair(actor_id, target_id)
        with self._lock(low, high) as locked:
            self._enter(GateState.RECORDING)
            used = self._quota.admit(action)
            decision = self._detector.settle(actor_id, target_id, now)
        if not locked:
            logger.debug("Match settled without pair lock")

        remaining = max(0, usage.limit - used)
        if not decision.matched:
            return ActionResult(outcome=GateOutcome.ACCEPTED_NO_MATCH, remaining=remaining, limit=usage.limit)

        follow_up = MatchFollowUp()
        if decision.event is not None:
            self._enter(GateState.PROVISIONING)
            self._enter(GateState.NOTIFYING)
            follow_up = self._processor.handle(decision.event)

        return ActionResult(
            outcome=GateOutcome.ACCEPTED_MATCHED,
            matched=True,
            remaining=remaining,
            limit=usage.limit,
            conversation_id=follow_up.conversation.id if follow_up.conversation else None,
            notifications=follow_up.notifications,
        )

    def _new_action(
        self, actor_id: str, target_id: str, kind: ActionKind, now: datetime, matched: bool = False
    ) -> Action:
        return Action(
            id=self._id_factory(),
            actor_id=actor_id,
            target_id=target_id,
            kind=kind,
            is_matched=matched,
            matched_at=now if matched else None,
            created_at=now,
        )

    @staticmethod
    def _enter(state: GateState) -> None:
        logger.debug("Gate state", state=state.value)
