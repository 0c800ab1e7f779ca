"""Pydantic schemas for chat operations."""

from datetime import datetime

from pydantic import BaseModel, Field

from memoryvault.schemas.base import BaseSchema
from memoryvault.schemas.notes import NoteRead


# Request schemas
class ChatMessageRequest(BaseModel):
    """Request to send a chat message. Text, images or both."""

    message: str = Field(default="", max_length=10000)
    image_uris: list[str] = Field(default_factory=list)


# Response schemas
class ChatSessionRead(BaseSchema):
    """Chat session response."""

    id: int
    user_id: int
    started_at: datetime


class MessageRead(BaseSchema):
    """Chat message with its referenced notes resolved.

    ``notes`` only contains notes that still exist; ``referenced_note_ids`` is
    the id list as recorded when the message was written.
    """

    id: int
    session_id: int
    type: str
    content: str
    timestamp: datetime
    referenced_note_ids: list[int] = Field(default_factory=list)
    has_images: bool = False
    image_paths: list[str] = Field(default_factory=list)
    notes: list[NoteRead] = Field(default_factory=list)
