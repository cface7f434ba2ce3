"""Caller identity resolution through Supabase auth."""

from typing import Any, Optional

from supabase import Client, create_client

from matchgate.config import settings
from matchgate.utils.errors import AuthenticationError, ConfigurationError
from matchgate.utils.logging import get_logger

logger = get_logger(__name__)


class SupabaseIdentityResolver:
    """
    Resolves a bearer token to the Supabase user id.

    The client is created on first use so the API can start without auth
    configured (e.g. for health checks).
    """

    def __init__(self, client: Optional[Client] = None) -> None:
        self._client = client

    def _get_client(self) -> Client:
        if self._client is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be configured")
            self._client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
            logger.info("Supabase client initialized")
        return self._client

    def resolve(self, token: Optional[str]) -> str:
        """
        Resolve the caller's user id.

        Args:
            token (Optional[str]): Access token from the Authorization header.

        Returns:
            str: The user id.

        Raises:
            AuthenticationError: If the token is missing, invalid or expired.
        """
        if not token:
            raise AuthenticationError()

        client = self._get_client()
        try:
            response: Any = client.auth.get_user(token)
        except Exception as e:
            logger.info("Token rejected by auth service", error=str(e))
            raise AuthenticationError(details={"reason": str(e)}) from e

        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise AuthenticationError(details={"reason": "no user for token"})
        return str(user.id)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
