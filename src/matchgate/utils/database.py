"""Database models and connection utilities for the MatchGate service."""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import sentry_sdk
from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, UniqueConstraint, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from matchgate.utils.errors import ConfigurationError, TransientStoreError
from matchgate.utils.logging import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Get current UTC time (naive), the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class ProfileDB(Base):
    """Profile rows owned by the profile service; read here for existence and names."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class ActionDB(Base):
    """Directed like/pass action database model."""

    __tablename__ = "actions"
    __table_args__ = (
        UniqueConstraint("actor_id", "target_id", name="uq_actions_actor_target"),
        Index("ix_actions_actor_kind_created", "actor_id", "kind", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    actor_id: Mapped[str] = mapped_column(String(36), index=True)
    target_id: Mapped[str] = mapped_column(String(36), index=True)
    kind: Mapped[str] = mapped_column(String(10))
    is_matched: Mapped[bool] = mapped_column(Boolean, default=False)
    matched_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class ConversationDB(Base):
    """Conversation database model, one row per canonical pair."""

    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("participant_low", "participant_high", name="uq_conversations_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    participant_low: Mapped[str] = mapped_column(String(36))
    participant_high: Mapped[str] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class NotificationDB(Base):
    """Notification database model."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    recipient_id: Mapped[str] = mapped_column(String(36), index=True)
    type: Mapped[str] = mapped_column(String(30))
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class MatchEventDB(Base):
    """Outbox row written in the same transaction that forms a match."""

    __tablename__ = "match_events"
    __table_args__ = (UniqueConstraint("participant_low", "participant_high", name="uq_match_events_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    participant_low: Mapped[str] = mapped_column(String(36))
    participant_high: Mapped[str] = mapped_column(String(36))
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    conversation_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


def _redact_url(database_url: str) -> str:
    """Hide the password part of a database URL for logging."""
    if "@" not in database_url:
        return database_url
    try:
        part1, part2 = database_url.rsplit("@", 1)
        if ":" in part1:
            scheme_user, _ = part1.rsplit(":", 1)
            return f"{scheme_user}:***@{part2}"
    except ValueError:
        return "REDACTED_MALFORMED_URL"
    return database_url


def create_store_engine(database_url: str, timeout: float, echo: bool = False) -> Engine:
    """
    Create an engine whose every call is bounded by `timeout` seconds.

    SQLite gets a busy timeout, PostgreSQL a connect timeout plus a
    `statement_timeout`, and both a pool checkout timeout. In-memory SQLite
    shares one connection so tests and scripts see the same data.

    Args:
        database_url (str): SQLAlchemy database URL.
        timeout (float): Seconds before a store call is abandoned.
        echo (bool): Log emitted SQL.

    Returns:
        Engine: The configured engine.
    """
    # SQLAlchemy 1.4+ requires postgresql:// instead of postgres://
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    if database_url.startswith("sqlite"):
        connect_args: Dict[str, Any] = {"timeout": timeout, "check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool, echo=echo)
        return create_engine(database_url, connect_args=connect_args, echo=echo)

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return create_engine(
        database_url,
        connect_args=connect_args,
        pool_recycle=300,
        pool_pre_ping=True,
        pool_timeout=timeout,
        echo=echo,
    )


class Database:
    """Singleton database connection manager."""

    _engine: Optional[Engine] = None
    _session_factory: Optional[sessionmaker] = None

    @classmethod
    def get_engine(cls) -> Engine:
        """Get or create the database engine."""
        if cls._engine is None:
            from matchgate.config import get_settings

            settings = get_settings()
            database_url = settings.DATABASE_URL

            if not database_url:
                raise ConfigurationError("DATABASE_URL is not configured")

            try:
                cls._engine = create_store_engine(database_url, settings.STORE_TIMEOUT_SECONDS, echo=settings.DEBUG)
                logger.info("Database engine created", url=_redact_url(database_url))
            except Exception as e:
                safe_url = _redact_url(database_url)
                logger.error("Failed to create database engine", error=str(e), url=safe_url)
                raise ConfigurationError(
                    "Failed to connect to database", details={"error": str(e), "url": safe_url}
                ) from e
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> sessionmaker:
        """Get or create the session factory."""
        if cls._session_factory is None:
            cls._session_factory = sessionmaker(bind=cls.get_engine(), expire_on_commit=False)
        return cls._session_factory

    @classmethod
    def create_tables(cls) -> None:
        """Create all database tables."""
        Base.metadata.create_all(cls.get_engine())
        logger.info("Database tables created")

    @classmethod
    def reset(cls) -> None:
        """Drop the cached engine and session factory."""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None
        cls._session_factory = None


def init_database() -> None:
    """Initialize the database and create tables."""
    Database.create_tables()


@contextmanager
def session_scope(session_factory: Optional[sessionmaker] = None, operation: str = "query") -> Iterator[Session]:
    """
    Run one unit of work against the record store.

    Commits on success and rolls back on any error. `IntegrityError` is
    re-raised untouched so callers can map constraint hits to domain errors;
    every other driver failure (timeouts included) becomes
    `TransientStoreError`.

    Args:
        session_factory (Optional[sessionmaker]): Factory to use; defaults to the singleton's.
        operation (str): Operation name for logs and spans.

    Yields:
        Session: An open session.
    """
    factory = session_factory or Database.get_session_factory()
    session: Session = factory()
    with sentry_sdk.start_span(op="db.query", name=operation) as span:
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            span.set_status("already_exists")
            raise
        except SQLAlchemyError as e:
            session.rollback()
            span.set_status("internal_error")
            logger.error("Record store call failed", operation=operation, error=str(e))
            raise TransientStoreError(
                f"Record store unavailable during {operation}", operation=operation, details={"error": str(e)}
            ) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
