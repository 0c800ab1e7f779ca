"""Note schemas."""

from datetime import datetime

from pydantic import Field, field_validator

from memoryvault.schemas.base import BaseSchema


def normalize_tags(value: object) -> object:
    """Accept a comma-separated string or a list; strip entries and drop empty ones, keeping order."""
    if value is None:
        return value
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple)):
        return [tag.strip() for tag in value if isinstance(tag, str) and tag.strip()]
    return value


class NoteBase(BaseSchema):
    """Base note schema."""

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value: object) -> object:
        return normalize_tags(value)


class NoteCreate(NoteBase):
    """Schema for creating a note.

    Media arrives as capture URIs (transient camera/gallery/recorder locations)
    and is promoted into permanent storage before the note is written.
    """

    timestamp: datetime | None = None
    audio_uri: str | None = None
    image_uris: list[str] = Field(default_factory=list)


class NoteUpdate(BaseSchema):
    """Schema for updating a note. All fields optional.

    Setting ``audio_uri`` to null removes the recording; omitting it keeps it.
    """

    title: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = Field(None, min_length=1)
    tags: list[str] | None = None
    audio_uri: str | None = None
    image_uris: list[str] | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value: object) -> object:
        return normalize_tags(value)


class NoteRead(BaseSchema):
    """Schema for reading note data."""

    id: int
    title: str
    content: str
    timestamp: datetime
    tags: list[str]
    has_audio: bool
    has_images: bool
    audio_path: str | None = None
    image_paths: list[str] = Field(default_factory=list)
