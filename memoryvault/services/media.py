"""Media lifecycle: promotes capture URIs into app storage and removes orphaned files."""

import asyncio
import logging
import os
import shutil
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote, urlparse
from uuid import uuid4

from memoryvault.errors import MediaError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_SUFFIX = ".jpg"
DEFAULT_AUDIO_SUFFIX = ".m4a"


@dataclass
class PromotedMedia:
    """Result of promoting one note's attachments. Failed items are left out."""

    audio_path: str | None = None
    image_paths: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)


class MediaManager:
    """
    Owns the files under the permanent media directory.

    Capture URIs (camera, gallery, recorder) can be revoked once the capture
    session ends, so they are promoted here before any note references them.
    Images are copied, leaving the capture cache free to be cleared; audio
    recordings have a single producer and are moved.
    """

    def __init__(self, media_dir: Path | str):
        self.media_dir = Path(media_dir).expanduser().resolve()

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def to_path(uri: str) -> Path:
        """
        Local filesystem path for a plain path or ``file://`` URI.

        Raises:
            MediaError: for schemes the core cannot read (content://, ph://, ...)
        """
        parsed = urlparse(uri)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        if parsed.scheme and len(parsed.scheme) > 1:
            raise MediaError(f"Unsupported media URI scheme: {parsed.scheme}")
        # Bare path (a one-letter "scheme" is a Windows drive)
        return Path(uri)

    def is_permanent(self, uri: str) -> bool:
        """Whether ``uri`` already points inside the media directory."""
        path = self._resolve(uri)
        return path is not None and path.is_relative_to(self.media_dir)

    def _resolve(self, uri: str) -> Path | None:
        try:
            return self.to_path(uri).expanduser().resolve()
        except MediaError:
            return None

    def _owned_by(self, uri: str, owned: Iterable[str | None]) -> bool:
        """Whether ``uri`` is a permanent file listed in ``owned``."""
        if not self.is_permanent(uri):
            return False
        path = self._resolve(uri)
        return any(o and self._resolve(o) == path for o in owned)

    def _new_path(self, kind: str, source: Path, default_suffix: str) -> Path:
        suffix = source.suffix or default_suffix
        return self.media_dir / f"{kind}_{uuid4().hex}{suffix}"

    # -------------------------------------------------------------------------
    # Promotion
    # -------------------------------------------------------------------------

    async def promote_image(self, uri: str, owned: Iterable[str | None] = ()) -> str:
        """
        Copy an image into permanent storage.

        Every file in the media directory belongs to exactly one note or
        message, so a permanent path is only kept as-is when it is in ``owned``;
        anything else, including another note's file, gets a fresh copy.

        Args:
            uri: Capture URI or path of the image
            owned: Paths the caller already owns

        Returns:
            Permanent path of the copy, or ``uri`` unchanged if the caller owns it

        Raises:
            MediaError: If the source cannot be read or the copy fails
        """
        if self._owned_by(uri, owned):
            return str(self.to_path(uri))
        source = self.to_path(uri)
        target = self._new_path("image", source, DEFAULT_IMAGE_SUFFIX)
        try:
            await asyncio.to_thread(self._copy, source, target)
        except OSError as e:
            raise MediaError(f"Failed to copy image {uri}: {e}") from e
        logger.debug("Promoted image %s -> %s", uri, target)
        return str(target)

    async def promote_audio(self, uri: str, owned: Iterable[str | None] = ()) -> str:
        """
        Move an audio recording into permanent storage.

        A recording already in the media directory that the caller does not
        own is copied instead, leaving the other owner's file in place.

        Args:
            uri: Capture URI or path of the recording
            owned: Paths the caller already owns

        Returns:
            Permanent path of the recording, or ``uri`` unchanged if the caller owns it

        Raises:
            MediaError: If the source cannot be read or the move fails
        """
        if self._owned_by(uri, owned):
            return str(self.to_path(uri))
        source = self.to_path(uri)
        target = self._new_path("audio", source, DEFAULT_AUDIO_SUFFIX)
        transfer = self._copy if self.is_permanent(uri) else self._move
        try:
            await asyncio.to_thread(transfer, source, target)
        except OSError as e:
            raise MediaError(f"Failed to move audio {uri}: {e}") from e
        logger.debug("Promoted audio %s -> %s", uri, target)
        return str(target)

    async def promote_note_media(
        self,
        audio_uri: str | None,
        image_uris: Iterable[str],
        owned: Iterable[str | None] = (),
    ) -> PromotedMedia:
        """
        Promote every attachment of a note before the note is written.

        ``owned`` lists the note's current paths when it is being updated.
        A failed item is logged and dropped; the note is still saved without it.
        """
        owned = list(owned)
        promoted = PromotedMedia()
        if audio_uri:
            try:
                promoted.audio_path = await self.promote_audio(audio_uri, owned)
            except MediaError as e:
                logger.warning("Dropping audio attachment: %s", e)
                promoted.failures.append(audio_uri)
        for uri in image_uris:
            if not uri:
                continue
            try:
                promoted.image_paths.append(await self.promote_image(uri, owned))
            except MediaError as e:
                logger.warning("Dropping image attachment: %s", e)
                promoted.failures.append(uri)
        return promoted

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    async def delete_paths(self, paths: Iterable[str | None]) -> int:
        """
        Best-effort removal of owned files.

        Failures are logged, not raised: a leaked file is an acceptable worst
        case, a failed delete must never surface as a user error. Paths outside
        the media directory are never touched.

        Returns:
            Number of files removed
        """
        removed = 0
        for uri in paths:
            if not uri:
                continue
            if not self.is_permanent(uri):
                logger.warning("Refusing to delete media outside %s: %s", self.media_dir, uri)
                continue
            try:
                await asyncio.to_thread(self._unlink, self.to_path(uri))
                removed += 1
            except FileNotFoundError:
                logger.info("Media already gone: %s", uri)
            except OSError as e:
                logger.warning("Failed to delete media %s: %s", uri, e)
        return removed

    # -------------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # -------------------------------------------------------------------------

    def _copy(self, source: Path, target: Path) -> None:
        self.media_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)

    def _move(self, source: Path, target: Path) -> None:
        self.media_dir.mkdir(parents=True, exist_ok=True)
        shutil.move(os.fspath(source), os.fspath(target))

    @staticmethod
    def _unlink(path: Path) -> None:
        path.unlink()
