"""Redis-backed locks that serialise match formation per user pair."""

from contextlib import contextmanager
from typing import Iterator, Optional

import redis
import sentry_sdk

from matchgate.config import settings
from matchgate.utils.logging import get_logger

logger = get_logger(__name__)

PAIR_LOCK_KEY = "match_lock:{low}:{high}"


class RedisClient:
    """
    Singleton class for the Redis client.

    Locking is optional: if Redis is not configured or cannot be reached the
    client is marked as failed and callers run unlocked.
    """

    _instance: Optional[redis.Redis] = None
    _failed: bool = False

    @classmethod
    def get_client(cls) -> Optional[redis.Redis]:
        """
        Get or create a Redis client instance.

        Returns:
            Optional[redis.Redis]: Redis client instance or None if unavailable.
        """
        if cls._failed:
            return None

        if cls._instance is None:
            if not settings.REDIS_URL:
                logger.info("No Redis configuration found, pair locks disabled")
                cls._failed = True
                return None
            try:
                pool = redis.ConnectionPool.from_url(
                    settings.REDIS_URL,
                    max_connections=10,
                    socket_timeout=settings.PAIR_LOCK_TIMEOUT_SECONDS,
                    decode_responses=True,
                )
                cls._instance = redis.Redis(connection_pool=pool)
                logger.info("Redis client initialized")
            except Exception as e:
                logger.warning("Failed to initialize Redis client, pair locks disabled", error=str(e))
                cls._failed = True
                return None
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the cached client and any earlier failure."""
        cls._instance = None
        cls._failed = False


@contextmanager
def pair_lock(low: str, high: str, timeout: Optional[float] = None) -> Iterator[bool]:
    """
    Hold a lock for the canonical pair `(low, high)` while the body runs.

    Yields True when the lock is held and False when the body runs unlocked
    (Redis disabled, unreachable, or the lock could not be acquired in time).
    Running unlocked only reopens the concurrent-like window, which the match
    reconciler closes afterwards.

    Args:
        low (str): Lower identity of the pair.
        high (str): Higher identity of the pair.
        timeout (Optional[float]): Seconds to wait for and hold the lock.

    Yields:
        bool: Whether the lock is held.
    """
    wait = timeout if timeout is not None else settings.PAIR_LOCK_TIMEOUT_SECONDS
    key = PAIR_LOCK_KEY.format(low=low, high=high)

    with sentry_sdk.start_span(op="lock.pair", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            yield False
            return

        lock = client.lock(key, timeout=wait * 2, blocking_timeout=wait)
        try:
            acquired = lock.acquire()
        except redis.RedisError as e:
            logger.warning("Failed to acquire pair lock, continuing unlocked", key=key, error=str(e))
            span.set_status("internal_error")
            acquired = False

        if not acquired:
            logger.warning("Pair lock not acquired, continuing unlocked", key=key)
            span.set_data("status", "unlocked")
            yield False
            return

        span.set_data("status", "locked")
        try:
            yield True
        finally:
            try:
                lock.release()
            except redis.RedisError as e:
                logger.warning("Failed to release pair lock", key=key, error=str(e))
