"""Validation of incoming like/pass requests."""

import re

from matchgate.models.action import ActionKind
from matchgate.services.ports import ActionStore, ProfileStore
from matchgate.utils.errors import DuplicateActionError, NotFoundError, SelfActionError, ValidationError
from matchgate.utils.logging import get_logger

logger = get_logger(__name__)

IDENTITY_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_valid_identity(value: object) -> bool:
    """Check that `value` is a hyphenated UUID string."""
    return isinstance(value, str) and bool(IDENTITY_PATTERN.match(value))


def parse_kind(value: object) -> ActionKind:
    """
    Convert a raw action kind into `ActionKind`.

    Raises:
        ValidationError: If the kind is not "like" or "pass".
    """
    if isinstance(value, ActionKind):
        return value
    try:
        return ActionKind(value)
    except ValueError as e:
        raise ValidationError('kind must be "like" or "pass"', details={"kind": value}) from e


class ActionValidator:
    """Read-then-decide checks that run before anything is written."""

    def __init__(self, profiles: ProfileStore, actions: ActionStore) -> None:
        self._profiles = profiles
        self._actions = actions

    def validate(self, actor_id: str, target_id: str, kind: object) -> ActionKind:
        """
        Check a request in order: target format, kind, self-action, target
        existence, then an existing action for the ordered pair.

        Args:
            actor_id (str): The caller.
            target_id (str): The user being liked or passed.
            kind (object): Raw action kind.

        Returns:
            ActionKind: The parsed kind.

        Raises:
            ValidationError: Malformed target id or kind.
            SelfActionError: Actor and target are the same user.
            NotFoundError: Target profile does not exist.
            DuplicateActionError: The actor already acted on the target.
        """
        if not is_valid_identity(target_id):
            raise ValidationError("Invalid target user id", details={"target_id": target_id})

        action_kind = parse_kind(kind)

        if actor_id == target_id:
            raise SelfActionError(details={"actor_id": actor_id})

        if not self._profiles.exists(target_id):
            logger.info("Target profile not found", actor_id=actor_id, target_id=target_id)
            raise NotFoundError("Target user not found", details={"target_id": target_id})

        if self._actions.get(actor_id, target_id) is not None:
            raise DuplicateActionError(details={"actor_id": actor_id, "target_id": target_id})

        return action_kind
