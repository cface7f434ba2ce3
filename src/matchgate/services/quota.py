"""Daily like quota, counted per calendar day of a fixed reference timezone."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import sentry_sdk

from matchgate.config import settings
from matchgate.models.action import Action, QuotaUsage
from matchgate.services.ports import ActionStore
from matchgate.utils.errors import QuotaExceededError
from matchgate.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def day_window(now: datetime, utc_offset_hours: int) -> Tuple[datetime, datetime]:
    """
    Get the reference-timezone calendar day containing `now`.

    The reference zone is a fixed offset applied to every user regardless of
    their locale. Naive inputs are taken as UTC.

    Args:
        now (datetime): The instant to place.
        utc_offset_hours (int): Offset of the reference timezone from UTC.

    Returns:
        Tuple[datetime, datetime]: Naive UTC `(start, end)` of the day, end exclusive.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    reference = timezone(timedelta(hours=utc_offset_hours))
    local = now.astimezone(reference)
    local_start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    start = local_start.astimezone(timezone.utc).replace(tzinfo=None)
    return start, start + timedelta(days=1)


class QuotaTracker:
    """Counts an actor's likes in the current quota window."""

    def __init__(
        self,
        actions: ActionStore,
        limit: Optional[int] = None,
        utc_offset_hours: Optional[int] = None,
        clock: Clock = system_clock,
    ) -> None:
        self._actions = actions
        self.limit = settings.DAILY_LIKE_LIMIT if limit is None else limit
        self.utc_offset_hours = settings.QUOTA_UTC_OFFSET_HOURS if utc_offset_hours is None else utc_offset_hours
        self._clock = clock

    def usage(self, actor_id: str) -> QuotaUsage:
        """
        Compute likes used and remaining in the actor's current window.

        The window is recomputed on every call; no counter is persisted.

        Args:
            actor_id (str): The acting user.

        Returns:
            QuotaUsage: Usage for the current window.
        """
        with sentry_sdk.start_span(op="quota.usage", name=actor_id) as span:
            start, end = day_window(self._clock(), self.utc_offset_hours)
            used = self._actions.count_likes_since(actor_id, start, end)
            remaining = max(0, self.limit - used)
            span.set_data("used", used)
            span.set_data("remaining", remaining)
            return QuotaUsage(used=used, remaining=remaining, limit=self.limit, window_start=start, resets_at=end)

    def check(self, actor_id: str) -> QuotaUsage:
        """
        Refuse a like once the daily limit is reached.

        Raises:
            QuotaExceededError: If `used >= limit`.
        """
        usage = self.usage(actor_id)
        if usage.used >= self.limit:
            self._refuse(actor_id, usage.used, usage.resets_at)
        return usage

    def admit(self, action: Action) -> int:
        """
        Record a like only if it still fits in the window containing its timestamp.

        `check` is an early read; this is the binding decision. The count and
        the insert happen in one store transaction, so concurrent likes by the
        same actor cannot push the day past the limit.

        Args:
            action (Action): The like to record.

        Returns:
            int: Likes used in the window including this one.

        Raises:
            QuotaExceededError: If the window filled up since `check`.
            DuplicateActionError: If the ordered pair already has an action.
        """
        start, end = day_window(action.created_at, self.utc_offset_hours)
        used = self._actions.insert_like(action, start, end, self.limit)
        if used is None:
            self._refuse(action.actor_id, self.limit, end)
        return used

    def _refuse(self, actor_id: str, used: int, resets_at: datetime) -> None:
        logger.info("Daily like limit reached", actor_id=actor_id, used=used, limit=self.limit)
        raise QuotaExceededError(self.limit, details={"resets_at": resets_at.isoformat()})


def to_naive_utc(value: datetime) -> datetime:
    """Convert to the naive UTC form timestamp columns store."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
