"""Dependency wiring for the FastAPI app."""

from typing import Optional

from fastapi import Depends, Header

from matchgate.services import build_gate
from matchgate.services.gate import MatchingGate
from matchgate.services.identity import SupabaseIdentityResolver, bearer_token
from matchgate.services.ports import ActionStore, IdentityResolver, NotificationSink
from matchgate.services.stores import SqlActionStore, SqlNotificationSink

_identity_resolver: Optional[IdentityResolver] = None
_gate: Optional[MatchingGate] = None


def get_identity_resolver() -> IdentityResolver:
    """Return the process-wide identity resolver."""
    global _identity_resolver
    if _identity_resolver is None:
        _identity_resolver = SupabaseIdentityResolver()
    return _identity_resolver


def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> str:
    """Resolve the caller from the bearer token or fail with 401."""
    return resolver.resolve(bearer_token(authorization))


def get_gate() -> MatchingGate:
    """Return a gate wired to the configured database."""
    global _gate
    if _gate is None:
        _gate = build_gate()
    return _gate


def get_action_store() -> ActionStore:
    return SqlActionStore()


def get_notification_sink() -> NotificationSink:
    return SqlNotificationSink()
