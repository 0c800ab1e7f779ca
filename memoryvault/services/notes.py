"""Note service: media promotion and cleanup around entity store writes."""

import logging

from memoryvault.schemas.notes import NoteCreate, NoteRead, NoteUpdate
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.media import MediaManager

logger = logging.getLogger(__name__)


class NoteService:
    """
    Saves and deletes notes together with their media.

    Promotion always finishes before the row is written, so a persisted note
    only ever references files that exist in permanent storage.
    """

    def __init__(self, store: EntityStore, media: MediaManager):
        self.store = store
        self.media = media

    async def list_notes(self, query: str | None = None) -> list[NoteRead]:
        if query:
            return await self.store.search_notes(query)
        return await self.store.list_notes()

    async def get_note(self, note_id: int) -> NoteRead | None:
        return await self.store.get_note(note_id)

    async def create_note(self, data: NoteCreate) -> NoteRead:
        """Promote attachments, then insert the note."""
        promoted = await self.media.promote_note_media(data.audio_uri, data.image_uris)
        note = await self.store.create_note(
            title=data.title,
            content=data.content,
            tags=data.tags,
            audio_path=promoted.audio_path,
            image_paths=promoted.image_paths,
            timestamp=data.timestamp,
        )
        logger.info(
            "Created note %s (audio=%s, images=%d, dropped=%d)",
            note.id, note.has_audio, len(note.image_paths), len(promoted.failures),
        )
        return note

    async def update_note(self, note_id: int, data: NoteUpdate) -> NoteRead | None:
        """
        Apply a partial update.

        Paths the note already owns are kept as they are; anything else is
        promoted, so a note never shares a file with another note. Files the
        note stops referencing are removed once the new row is saved.
        """
        existing = await self.store.get_note(note_id)
        if existing is None:
            return None

        changes = data.model_dump(exclude_unset=True)
        audio_uri = changes["audio_uri"] if "audio_uri" in changes else existing.audio_path
        image_uris = changes.get("image_uris")
        if image_uris is None:
            image_uris = existing.image_paths
        promoted = await self.media.promote_note_media(
            audio_uri, image_uris, owned=[existing.audio_path, *existing.image_paths]
        )

        note = await self.store.update_note(
            note_id,
            title=changes.get("title") or existing.title,
            content=changes.get("content") or existing.content,
            tags=changes["tags"] if changes.get("tags") is not None else existing.tags,
            audio_path=promoted.audio_path,
            image_paths=promoted.image_paths,
        )
        if note is None:
            # Deleted while media was being promoted; the fresh copies are orphans
            await self.media.delete_paths(self._new_paths(existing, promoted.audio_path, promoted.image_paths))
            return None

        still_owned = set(note.image_paths) | {note.audio_path}
        orphaned = [p for p in [existing.audio_path, *existing.image_paths] if p and p not in still_owned]
        if orphaned:
            await self.media.delete_paths(orphaned)
        return note

    async def delete_note(self, note_id: int) -> bool:
        """Delete a note and, best-effort, its media. Missing ids are not an error."""
        deleted = await self.store.delete_note(note_id)
        if deleted is None:
            return False
        await self.media.delete_paths([deleted.audio_path, *deleted.image_paths])
        logger.info("Deleted note %s", note_id)
        return True

    @staticmethod
    def _new_paths(existing: NoteRead, audio_path: str | None, image_paths: list[str]) -> list[str]:
        old = {existing.audio_path, *existing.image_paths}
        return [p for p in [audio_path, *image_paths] if p and p not in old]
