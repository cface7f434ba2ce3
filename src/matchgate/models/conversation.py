"""Conversation model and canonical pair ordering."""

from datetime import datetime
from typing import Tuple

from pydantic import BaseModel, ConfigDict


def canonical_pair(first_id: str, second_id: str) -> Tuple[str, str]:
    """
    Order two identities so the unordered pair maps to one key.

    Args:
        first_id (str): One participant.
        second_id (str): The other participant.

    Returns:
        Tuple[str, str]: `(low, high)` in lexicographic order.
    """
    if first_id < second_id:
        return first_id, second_id
    return second_id, first_id


class Conversation(BaseModel):
    """Conversation opened once two users match."""

    id: str
    participant_low: str
    participant_high: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def other_participant(self, user_id: str) -> str:
        """Return the participant that is not `user_id`."""
        return self.participant_high if user_id == self.participant_low else self.participant_low
