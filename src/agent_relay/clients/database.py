"""SQLite database client for Agent Relay."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    create_engine,
    text,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, sessionmaker

from agent_relay import constants
from agent_relay.errors import ConflictError, StoreFailure
from agent_relay.models.enums import ConversationStatus, CreatorRole
from agent_relay.utils.pathing import ensure_runtime_directories

LOG = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores datetimes as UTC and hands them back timezone-aware."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class BaseModel(DeclarativeBase):
    """Declarative base class for SQLAlchemy models."""


def _build_engine(echo: bool = False):
    ensure_runtime_directories()
    return create_engine(
        f"sqlite:///{constants.DB_FILE}",
        echo=echo,
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )


ENGINE = _build_engine()
SESSION_FACTORY = sessionmaker(bind=ENGINE, autoflush=False, expire_on_commit=False, future=True)


class Agent(BaseModel):
    """Registered agent. The username is the identity every other table points at."""

    __tablename__ = "agents"

    username: Mapped[str] = mapped_column(String, primary_key=True)
    api_key: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    wallet_address: Mapped[str] = mapped_column(String, nullable=False, default="")
    is_special_agent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_respond: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    last_active: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class SpecialAgentConfig(BaseModel):
    """Reply adapter settings for an auto-responding agent."""

    __tablename__ = "special_agent_configs"

    agent_username: Mapped[str] = mapped_column(
        String, ForeignKey("agents.username"), primary_key=True
    )
    adapter: Mapped[str] = mapped_column(String, nullable=False)
    model_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    system_prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    temperature: Mapped[float] = mapped_column(Float, nullable=False, default=0.7)
    max_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=1024)


class Conversation(BaseModel):
    """Channel between exactly two agents, stored in sorted participant order."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    participant_a: Mapped[str] = mapped_column(String, nullable=False)
    participant_b: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[ConversationStatus] = mapped_column(
        Enum(ConversationStatus, values_callable=lambda members: [m.value for m in members]),
        default=ConversationStatus.ACTIVE,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    messages: Mapped[list["Message"]] = relationship(back_populates="conversation")

    __table_args__ = (
        Index(
            "uq_conversations_active_pair",
            "participant_a",
            "participant_b",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


class Message(BaseModel):
    """Immutable message; only the read/responded flags ever change."""

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        String, ForeignKey("conversations.id"), nullable=False, index=True
    )
    sender_username: Mapped[str] = mapped_column(String, nullable=False, index=True)
    recipient_username: Mapped[str] = mapped_column(String, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    responded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    conversation: Mapped["Conversation"] = relationship(back_populates="messages")
    inbox_items: Mapped[list["InboxItem"]] = relationship(back_populates="message")


class InboxItem(BaseModel):
    """Recipient-side index entry for a message."""

    __tablename__ = "inbox_items"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    message_id: Mapped[str] = mapped_column(String, ForeignKey("messages.id"), nullable=False)
    agent_username: Mapped[str] = mapped_column(String, nullable=False, index=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    message: Mapped["Message"] = relationship(back_populates="inbox_items")

    __table_args__ = (
        Index("uq_inbox_items_message_agent", "message_id", "agent_username", unique=True),
    )


class CharacterProfile(BaseModel):
    """Creator profile produced by the character-creation dialogue."""

    __tablename__ = "character_profiles"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    agent_username: Mapped[str] = mapped_column(
        String, ForeignKey("agents.username"), nullable=False, unique=True
    )
    designation: Mapped[str] = mapped_column(String, nullable=False)
    visual_form: Mapped[str] = mapped_column(Text, nullable=False)
    source_code: Mapped[str] = mapped_column(Text, nullable=False)
    primary_function: Mapped[str] = mapped_column(Text, nullable=False)
    affinity_order: Mapped[int] = mapped_column(Integer, nullable=False)
    affinity_chaos: Mapped[int] = mapped_column(Integer, nullable=False)
    affinity_matter: Mapped[int] = mapped_column(Integer, nullable=False)
    affinity_concept: Mapped[int] = mapped_column(Integer, nullable=False)
    creator_role: Mapped[CreatorRole] = mapped_column(Enum(CreatorRole), nullable=False)
    creative_approach: Mapped[str] = mapped_column(Text, nullable=False)
    nft_token_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    nft_ip_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    nft_image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


def init_db(echo: bool = False) -> None:
    """Create tables if they do not exist."""
    global ENGINE, SESSION_FACTORY
    ENGINE = _build_engine(echo=echo)
    SESSION_FACTORY = sessionmaker(
        bind=ENGINE,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )
    BaseModel.metadata.create_all(bind=ENGINE)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = SESSION_FACTORY()
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Write conflicts with existing data.") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        LOG.error("Database operation failed: %s", exc)
        raise StoreFailure("Persistence layer error.") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
