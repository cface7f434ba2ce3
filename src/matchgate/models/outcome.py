"""Gate states, terminal outcomes and the result returned to callers."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class GateState(str, Enum):
    """
    Request states of the matching gate.

    A request walks these in order; QUOTA_CHECK and MATCH_CHECK only run for
    likes, PROVISIONING and NOTIFYING only when a match formed.
    """

    VALIDATING = "validating"
    QUOTA_CHECK = "quota_check"
    MATCH_CHECK = "match_check"
    RECORDING = "recording"
    PROVISIONING = "provisioning"
    NOTIFYING = "notifying"
    RESPONDED = "responded"


class GateOutcome(str, Enum):
    """Terminal outcome of one pass through the gate."""

    ACCEPTED_NO_MATCH = "accepted_no_match"
    ACCEPTED_MATCHED = "accepted_matched"
    REJECTED_VALIDATION = "rejected_validation"
    REJECTED_QUOTA = "rejected_quota"
    REJECTED_DUPLICATE = "rejected_duplicate"


class NotificationFailure(BaseModel):
    """A notification that could not be written."""

    recipient_id: str
    error: str


class DispatchReport(BaseModel):
    """
    Side-channel outcome of a notification dispatch.

    Dispatch is best-effort: failures are collected here instead of being
    raised, so callers can see what was missed without inspecting logs.
    """

    delivered: List[str] = Field(default_factory=list)
    failures: List[NotificationFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every participant was notified."""
        return not self.failures


class ActionResult(BaseModel):
    """Result of an accepted like or pass."""

    outcome: GateOutcome
    accepted: bool = True
    matched: bool = False
    remaining: int
    limit: int
    conversation_id: Optional[str] = None
    notifications: Optional[DispatchReport] = None
