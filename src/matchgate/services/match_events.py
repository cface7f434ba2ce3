"""Consumers of match events: provisioning, notifications and reconciliation."""

from dataclasses import dataclass
from typing import Optional

import sentry_sdk

from matchgate.models.conversation import Conversation
from matchgate.models.match_event import MatchEvent
from matchgate.models.outcome import DispatchReport
from matchgate.services.conversations import ConversationProvisioner
from matchgate.services.match_detector import MatchDetector
from matchgate.services.notifications import NotificationDispatcher
from matchgate.services.ports import ActionStore, MatchEventLog
from matchgate.services.quota import Clock, system_clock, to_naive_utc
from matchgate.utils.errors import MatchGateError
from matchgate.utils.logging import get_logger, log_error

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchFollowUp:
    """What happened after a match event was handled."""

    conversation: Optional[Conversation] = None
    notifications: Optional[DispatchReport] = None


class MatchEventProcessor:
    """
    Runs the side effects of a formed match.

    The conversation is provisioned first. Notifications go out only once the
    event is marked processed, so a retried event never notifies twice. An
    event whose conversation could not be provisioned stays pending.
    """

    def __init__(
        self,
        provisioner: ConversationProvisioner,
        dispatcher: NotificationDispatcher,
        events: MatchEventLog,
    ) -> None:
        self._provisioner = provisioner
        self._dispatcher = dispatcher
        self._events = events

    def handle(self, event: MatchEvent) -> MatchFollowUp:
        with sentry_sdk.start_span(op="match_event.handle", name=event.id) as span:
            conversation = self._provisioner.try_provision(event.participant_low, event.participant_high)
            if conversation is None:
                self._record_failure(event, "conversation provisioning failed")
                span.set_status("internal_error")
                return MatchFollowUp()

            try:
                self._events.mark_processed(event.id, conversation.id)
            except MatchGateError as e:
                log_error(logger, e, "Failed to mark match event processed", extra={"event_id": event.id})
                span.set_status("internal_error")
                return MatchFollowUp(conversation=conversation)

            notifications = self._dispatcher.dispatch(event.participant_low, event.participant_high)
            span.set_data("notifications_ok", notifications.ok)
            return MatchFollowUp(conversation=conversation, notifications=notifications)

    def process_pending(self, limit: int = 100) -> int:
        """
        Retry events left pending by earlier failures.

        Returns:
            int: Number of events processed in this run.
        """
        processed = 0
        for event in self._events.pending(limit):
            if self.handle(event).conversation is not None:
                processed += 1
        logger.info("Pending match events processed", processed=processed)
        return processed

    def _record_failure(self, event: MatchEvent, error: str) -> None:
        try:
            self._events.record_failure(event.id, error)
        except MatchGateError as e:
            log_error(logger, e, "Failed to record match event failure", extra={"event_id": event.id})


class MatchReconciler:
    """
    Promotes mutual likes that were left unmatched.

    Two users liking each other at the same instant can both commit before
    either sees the other's like. This pass finds such pairs and forms the
    match the normal way.
    """

    def __init__(
        self,
        actions: ActionStore,
        detector: MatchDetector,
        processor: MatchEventProcessor,
        clock: Clock = system_clock,
    ) -> None:
        self._actions = actions
        self._detector = detector
        self._processor = processor
        self._clock = clock

    def reconcile(self, limit: int = 100) -> int:
        """
        Run one reconciliation pass.

        Returns:
            int: Number of matches formed.
        """
        formed = 0
        with sentry_sdk.start_span(op="match.reconcile", name="reconcile") as span:
            pairs = self._actions.find_unmatched_mutual_likes(limit)
            for first_id, second_id in pairs:
                now = to_naive_utc(self._clock())
                decision = self._detector.settle(first_id, second_id, now)
                if decision.event is None:
                    continue
                formed += 1
                logger.warning("Reconciled unmatched mutual likes", first_id=first_id, second_id=second_id)
                self._processor.handle(decision.event)
            span.set_data("candidates", len(pairs))
            span.set_data("formed", formed)

        logger.info("Match reconciliation finished", candidates=len(pairs), formed=formed)
        return formed
