"""Conversation provisioning for matched pairs."""

from typing import Optional

import sentry_sdk

from matchgate.models.conversation import Conversation, canonical_pair
from matchgate.services.ports import ConversationStore
from matchgate.utils.errors import ConflictError, MatchGateError
from matchgate.utils.logging import get_logger, log_error

logger = get_logger(__name__)


class ConversationProvisioner:
    """Creates the one conversation a matched pair shares."""

    def __init__(self, conversations: ConversationStore) -> None:
        self._conversations = conversations

    def provision(self, first_id: str, second_id: str) -> Conversation:
        """
        Get or create the conversation for the unordered pair.

        Idempotent: repeated calls, in either argument order, return the same
        conversation. A concurrent insert that wins the unique constraint is
        re-read rather than duplicated.

        Args:
            first_id (str): One participant.
            second_id (str): The other participant.

        Returns:
            Conversation: The pair's conversation.

        Raises:
            TransientStoreError: If the store is unavailable.
        """
        low, high = canonical_pair(first_id, second_id)
        with sentry_sdk.start_span(op="conversation.provision", name=f"{low}:{high}") as span:
            existing = self._conversations.get_by_pair(low, high)
            if existing is not None:
                span.set_data("action", "existing")
                return existing

            try:
                conversation = self._conversations.create(low, high)
            except ConflictError:
                logger.info("Conversation created concurrently, re-reading", participant_low=low, participant_high=high)
                winner = self._conversations.get_by_pair(low, high)
                if winner is None:
                    raise
                span.set_data("action", "existing")
                return winner

            logger.info(
                "Conversation created", conversation_id=conversation.id, participant_low=low, participant_high=high
            )
            span.set_data("action", "created")
            return conversation

    def try_provision(self, first_id: str, second_id: str) -> Optional[Conversation]:
        """
        Provision without failing the caller.

        Returns:
            Optional[Conversation]: The conversation, or None if it could not be created.
        """
        try:
            return self.provision(first_id, second_id)
        except MatchGateError as e:
            log_error(
                logger,
                e,
                "Failed to provision conversation",
                extra={"first_id": first_id, "second_id": second_id},
            )
            return None
