"""Custom exceptions for the MatchGate service."""

from typing import Any, Dict, Optional

from matchgate.models.outcome import GateOutcome


class MatchGateError(Exception):
    """Base exception for all MatchGate errors."""

    code = "internal_error"
    outcome: Optional[GateOutcome] = None

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the error with a message and optional details.

        Args:
            message (str): Error message describing what went wrong.
            status_code (int): HTTP status code associated with the error (default 500).
            details (Optional[Dict[str, Any]]): Additional context or debug information.
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(MatchGateError):
    """Raised when there's an issue with the application configuration."""

    code = "configuration_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 500, details)


class ValidationError(MatchGateError):
    """Raised when the target identity or action kind is malformed."""

    code = "validation_error"
    outcome = GateOutcome.REJECTED_VALIDATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 400, details)


class SelfActionError(MatchGateError):
    """Raised when a user tries to like or pass on themselves."""

    code = "self_action"
    outcome = GateOutcome.REJECTED_VALIDATION

    def __init__(
        self, message: str = "Cannot act on your own profile", details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, 400, details)


class AuthenticationError(MatchGateError):
    """Raised when the caller identity cannot be resolved."""

    code = "authentication_required"

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 401, details)


class NotFoundError(MatchGateError):
    """Raised when a requested resource is not found."""

    code = "not_found"
    outcome = GateOutcome.REJECTED_VALIDATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 404, details)


class ConflictError(MatchGateError):
    """Raised when a write collides with a unique constraint in the record store."""

    code = "conflict"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 409, details)


class DuplicateActionError(ConflictError):
    """Raised when the caller already liked or passed on the target."""

    code = "duplicate_action"
    outcome = GateOutcome.REJECTED_DUPLICATE

    def __init__(
        self, message: str = "Action already recorded for this user", details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)


class QuotaExceededError(MatchGateError):
    """Raised when the daily like limit has been reached."""

    code = "quota_exceeded"
    outcome = GateOutcome.REJECTED_QUOTA

    def __init__(self, limit: int, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the quota error.

        Args:
            limit (int): The daily limit that was reached.
            details (Optional[Dict[str, Any]]): Additional details.
        """
        self.limit = limit
        self.remaining = 0
        error_details = details or {}
        error_details.update({"remaining": 0, "limit": limit})
        super().__init__(f"Daily like limit ({limit}) reached", 429, error_details)


class TransientStoreError(MatchGateError):
    """Raised when a record store call fails or times out."""

    code = "store_unavailable"

    def __init__(self, message: str, operation: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the store error.

        Args:
            message (str): Error message.
            operation (str): Name of the store operation that failed.
            details (Optional[Dict[str, Any]]): Additional details.
        """
        error_details = details or {}
        error_details["operation"] = operation
        super().__init__(message, 503, error_details)


class NotificationDispatchError(MatchGateError):
    """Raised when a match notification cannot be written. Never fatal."""

    code = "notification_failed"

    def __init__(self, message: str, recipient_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        error_details = details or {}
        error_details["recipient_id"] = recipient_id
        self.recipient_id = recipient_id
        super().__init__(message, 500, error_details)
