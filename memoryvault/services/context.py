"""Context summarizer: renders the note collection as prompt context."""

import logging
from collections.abc import Sequence

from memoryvault.config import Settings
from memoryvault.schemas.notes import NoteRead
from memoryvault.services.entity_store import EntityStore

logger = logging.getLogger(__name__)

EMPTY_CONTEXT = "The user has not created any memories yet. Encourage them to create their first one!"
NOTE_SEPARATOR = "\n\n---\n\n"
TRUNCATED_MARKER = " [... content truncated ...]"
OMITTED_MARKER = "[... additional memories omitted due to size limits ...]"


def format_note_date(note: NoteRead) -> str:
    """Long human date, e.g. ``January 5, 2026``."""
    ts = note.timestamp
    return f"{ts:%B} {ts.day}, {ts.year}"


def render_note(note: NoteRead, max_content_chars: int | None = None) -> str:
    """One paragraph describing a note: id, date, title, content, tags and media counts."""
    content = note.content
    if max_content_chars is not None and len(content) > max_content_chars:
        content = content[:max_content_chars] + TRUNCATED_MARKER

    lines = [
        f"[Note ID: {note.id}]",
        f'On {format_note_date(note)}, the user recorded a memory titled "{note.title}".',
        f"Content: {content}",
    ]
    if note.tags:
        lines.append(f"Tags: {', '.join(note.tags)}")

    media = []
    if note.has_images:
        media.append(
            f"This note has {len(note.image_paths)} image(s) that could be compared with user-shared images."
        )
    if note.has_audio:
        media.append("This note has an audio recording.")
    if media:
        lines.append(" ".join(media))
    return "\n".join(lines)


class ContextSummarizer:
    """Builds the bounded context blob fed to the model."""

    def __init__(self, store: EntityStore, settings: Settings):
        self.store = store
        self.note_max_chars = settings.note_context_max_chars
        self.max_total_chars = settings.max_total_context_chars

    def summarize(self, notes: Sequence[NoteRead]) -> str:
        """
        Render ``notes`` in the given order.

        Returns EMPTY_CONTEXT when there are no notes; callers treat it as a
        normal result.
        """
        if not notes:
            return EMPTY_CONTEXT

        parts: list[str] = []
        total_chars = 0
        for note in notes:
            part = render_note(note, self.note_max_chars)
            cost = len(part) + (len(NOTE_SEPARATOR) if parts else 0)
            if total_chars + cost > self.max_total_chars:
                logger.info(
                    "Context budget reached after %d of %d notes", len(parts), len(notes)
                )
                parts.append(OMITTED_MARKER)
                break
            parts.append(part)
            total_chars += cost
        return NOTE_SEPARATOR.join(parts)

    async def build_context(self) -> str:
        """Context for the whole note collection, newest first."""
        return self.summarize(await self.store.list_notes())
