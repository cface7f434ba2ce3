"""Models package for the MatchGate service."""

from matchgate.models.action import Action, ActionKind, MatchedUser, QuotaUsage
from matchgate.models.conversation import Conversation, canonical_pair
from matchgate.models.match_event import MatchEvent, MatchEventStatus
from matchgate.models.notification import Notification, NotificationType
from matchgate.models.outcome import ActionResult, DispatchReport, GateOutcome, GateState, NotificationFailure

__all__ = [
    "Action",
    "ActionKind",
    "ActionResult",
    "Conversation",
    "DispatchReport",
    "GateOutcome",
    "GateState",
    "MatchEvent",
    "MatchEventStatus",
    "MatchedUser",
    "Notification",
    "NotificationFailure",
    "NotificationType",
    "QuotaUsage",
    "canonical_pair",
]
