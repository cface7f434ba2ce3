"""Best-effort match notifications."""

import uuid
from typing import Callable, Optional

from matchgate.config import settings
from matchgate.models.notification import Notification, NotificationType
from matchgate.models.outcome import DispatchReport, NotificationFailure
from matchgate.services.ports import NotificationSink, ProfileStore
from matchgate.utils.database import utcnow
from matchgate.utils.errors import NotificationDispatchError
from matchgate.utils.logging import get_logger, log_error

logger = get_logger(__name__)

MATCH_TITLE = "New match!"
MATCH_MESSAGE = "You matched with {name}! Send them a message."


class NotificationDispatcher:
    """Tells both participants about a new match."""

    def __init__(
        self,
        sink: NotificationSink,
        profiles: ProfileStore,
        default_name: Optional[str] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._sink = sink
        self._profiles = profiles
        self._default_name = default_name or settings.DEFAULT_DISPLAY_NAME
        self._id_factory = id_factory

    def dispatch(self, first_id: str, second_id: str) -> DispatchReport:
        """
        Write one match notification per participant.

        Each participant is notified independently; a failure for one does
        not stop the other. Failures are logged and returned in the report,
        never raised.

        Args:
            first_id (str): One participant.
            second_id (str): The other participant.

        Returns:
            DispatchReport: Who was notified and what failed.
        """
        report = DispatchReport()
        for recipient_id, counterpart_id in ((second_id, first_id), (first_id, second_id)):
            try:
                self._notify(recipient_id, counterpart_id)
                report.delivered.append(recipient_id)
            except NotificationDispatchError as e:
                log_error(logger, e, "Failed to send match notification", extra={"recipient_id": recipient_id})
                report.failures.append(NotificationFailure(recipient_id=recipient_id, error=e.message))

        logger.info(
            "Match notifications dispatched",
            delivered=len(report.delivered),
            failed=len(report.failures),
        )
        return report

    def _notify(self, recipient_id: str, counterpart_id: str) -> Notification:
        try:
            counterpart_name = self._profiles.display_name(counterpart_id) or self._default_name
            notification = Notification(
                id=self._id_factory(),
                recipient_id=recipient_id,
                type=NotificationType.MATCH,
                title=MATCH_TITLE,
                message=MATCH_MESSAGE.format(name=counterpart_name),
                payload={"matched_user_id": counterpart_id, "matched_user_name": counterpart_name},
                created_at=utcnow(),
            )
            return self._sink.create(notification)
        except Exception as e:
            raise NotificationDispatchError(
                f"Could not notify {recipient_id}", recipient_id=recipient_id, details={"error": str(e)}
            ) from e
