"""Pydantic schemas for API requests/responses and model payloads."""

from memoryvault.schemas.base import BaseSchema, FrozenSchema
from memoryvault.schemas.chat import ChatMessageRequest, ChatSessionRead, MessageRead
from memoryvault.schemas.games import (
    CompletionAnswerRequest,
    MemoryCompletionGame,
    QuizAnswerRequest,
    QuizQuestion,
    ReminiscenceSession,
)
from memoryvault.schemas.notes import NoteCreate, NoteRead, NoteUpdate
from memoryvault.schemas.user import UserCreate, UserRead

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",
    # User
    "UserCreate",
    "UserRead",
    # Notes
    "NoteCreate",
    "NoteRead",
    "NoteUpdate",
    # Chat
    "ChatMessageRequest",
    "ChatSessionRead",
    "MessageRead",
    # Games
    "QuizQuestion",
    "MemoryCompletionGame",
    "ReminiscenceSession",
    "QuizAnswerRequest",
    "CompletionAnswerRequest",
]
