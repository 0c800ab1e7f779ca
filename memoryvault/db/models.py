"""
SQLAlchemy 2.0 Models for Memory Vault.

Uses modern declarative syntax with Mapped[] type annotations.
Integer autoincrement keys; list-valued fields are stored as JSON columns so a
row is always written in a single statement.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from memoryvault.db.base import Base


def utc_now() -> datetime:
    """Naive UTC now; SQLite does not keep tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================


class MessageType(str, PyEnum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


# =============================================================================
# MODELS
# =============================================================================


class User(Base):
    """
    The single owner of this installation.

    Created once during onboarding and read-only afterwards.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    # Relationships
    chat_sessions: Mapped[list["ChatSession"]] = relationship(
        "ChatSession", back_populates="user", passive_deletes=True
    )


class Note(Base):
    """
    A user-authored memory with optional audio and image attachments.

    has_audio/has_images mirror audio_path/image_paths and are written together
    with them; see EntityStore._note_columns.
    """

    __tablename__ = "notes"
    __table_args__ = (Index("idx_notes_timestamp", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Media
    has_audio: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_images: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    audio_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_paths: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class ChatSession(Base):
    """Conversation container. The most recent session of a user is the active one."""

    __tablename__ = "chat_sessions"
    __table_args__ = (Index("idx_chat_sessions_user_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="chat_sessions")
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="session", passive_deletes=True
    )


class Message(Base):
    """
    Individual message in a chat session. Append-only.

    ``notes`` holds referenced note ids. It is a weak reference: the notes may
    have been deleted since.
    """

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint("type IN ('user', 'assistant')", name="ck_messages_type"),
        Index("idx_messages_session_id", "session_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    note_ids: Mapped[list[int]] = mapped_column("notes", JSON, nullable=False, default=list)
    has_images: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    image_paths: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Relationships
    session: Mapped["ChatSession"] = relationship("ChatSession", back_populates="messages")
