"""Service layer for the MatchGate service."""

from typing import Optional

from sqlalchemy.orm import sessionmaker

from matchgate.services.conversations import ConversationProvisioner
from matchgate.services.gate import MatchingGate
from matchgate.services.match_detector import MatchDecision, MatchDetector
from matchgate.services.match_events import MatchEventProcessor, MatchFollowUp, MatchReconciler
from matchgate.services.notifications import NotificationDispatcher
from matchgate.services.quota import Clock, QuotaTracker, day_window, system_clock
from matchgate.services.stores import (
    SqlActionStore,
    SqlConversationStore,
    SqlMatchEventLog,
    SqlNotificationSink,
    SqlProfileStore,
)
from matchgate.services.validator import ActionValidator


def build_gate(session_factory: Optional[sessionmaker] = None, clock: Clock = system_clock) -> MatchingGate:
    """Wire a gate over the SQLAlchemy stores."""
    profiles = SqlProfileStore(session_factory)
    actions = SqlActionStore(session_factory)
    processor = build_event_processor(session_factory)
    return MatchingGate(
        validator=ActionValidator(profiles, actions),
        quota=QuotaTracker(actions, clock=clock),
        detector=MatchDetector(actions),
        actions=actions,
        processor=processor,
        clock=clock,
    )


def build_event_processor(session_factory: Optional[sessionmaker] = None) -> MatchEventProcessor:
    """Wire the match event processor over the SQLAlchemy stores."""
    return MatchEventProcessor(
        provisioner=ConversationProvisioner(SqlConversationStore(session_factory)),
        dispatcher=NotificationDispatcher(SqlNotificationSink(session_factory), SqlProfileStore(session_factory)),
        events=SqlMatchEventLog(session_factory),
    )


def build_reconciler(session_factory: Optional[sessionmaker] = None, clock: Clock = system_clock) -> MatchReconciler:
    """Wire the reconciler over the SQLAlchemy stores."""
    actions = SqlActionStore(session_factory)
    return MatchReconciler(actions, MatchDetector(actions), build_event_processor(session_factory), clock=clock)


__all__ = [
    "ActionValidator",
    "ConversationProvisioner",
    "MatchDecision",
    "MatchDetector",
    "MatchEventProcessor",
    "MatchFollowUp",
    "MatchReconciler",
    "MatchingGate",
    "NotificationDispatcher",
    "QuotaTracker",
    "build_event_processor",
    "build_gate",
    "build_reconciler",
    "day_window",
]
