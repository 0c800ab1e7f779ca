"""Entity store: durable storage for users, notes, chat sessions and messages."""

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from memoryvault.db.base import Base
from memoryvault.db.models import ChatSession, Message, MessageType, Note, User, utc_now
from memoryvault.db.session import build_engine, build_sessionmaker
from memoryvault.errors import StoreError, StoreErrorReason
from memoryvault.schemas.chat import ChatSessionRead, MessageRead
from memoryvault.schemas.notes import NoteRead
from memoryvault.schemas.user import UserRead

logger = logging.getLogger(__name__)


class EntityStore:
    """
    Owns every persisted row.

    Construct one per application and pass it to whatever needs it; call
    ``initialize()`` before anything else. Reads return detached pydantic
    schemas, never live ORM objects, so callers cannot mutate a row by accident.
    """

    def __init__(self, database_url: str, *, echo: bool = False):
        self.database_url = database_url
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._sessionmaker is not None

    async def initialize(self) -> None:
        """
        Create the engine and all tables if absent.

        Safe to call any number of times: existing tables and rows are left
        untouched and the engine is only built once.
        """
        if self._engine is None:
            self._engine = build_engine(self.database_url, echo=self._echo)
            self._sessionmaker = build_sessionmaker(self._engine)
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Entity store ready at %s", self.database_url)

    async def close(self) -> None:
        """Dispose the engine. The store must be initialized again before reuse."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """One unit of work: committed on success, rolled back on any error."""
        if self._sessionmaker is None:
            raise StoreError("Database not initialized", StoreErrorReason.NOT_INITIALIZED)
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise StoreError(
                    f"Constraint violated: {e.orig}", StoreErrorReason.CONSTRAINT_VIOLATION
                ) from e
            except Exception:
                await session.rollback()
                raise

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def create_user(self, name: str, email: str | None = None) -> UserRead:
        """Create the installation's user. Only one may ever exist."""
        async with self._session() as db:
            existing = await db.scalar(select(func.count()).select_from(User))
            if existing:
                raise StoreError("A user already exists", StoreErrorReason.CONSTRAINT_VIOLATION)
            user = User(name=name, email=email)
            db.add(user)
            await db.flush()
            return UserRead.model_validate(user)

    async def get_user(self) -> UserRead | None:
        async with self._session() as db:
            user = await db.scalar(select(User).order_by(User.id.asc()).limit(1))
            return UserRead.model_validate(user) if user else None

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    @staticmethod
    def _note_columns(
        *,
        title: str,
        content: str,
        tags: Sequence[str],
        audio_path: str | None,
        image_paths: Sequence[str],
    ) -> dict:
        """
        Every note column in one mapping.

        The media flags are computed here from the paths, so the two can never
        disagree in a stored row.
        """
        audio_path = audio_path or None
        image_paths = [p for p in image_paths if p]
        return {
            "title": title,
            "content": content,
            "tags": list(tags),
            "has_audio": audio_path is not None,
            "has_images": len(image_paths) > 0,
            "audio_path": audio_path,
            "image_paths": image_paths,
        }

    async def create_note(
        self,
        *,
        title: str,
        content: str,
        tags: Sequence[str] = (),
        audio_path: str | None = None,
        image_paths: Sequence[str] = (),
        timestamp: datetime | None = None,
    ) -> NoteRead:
        """Insert a note in a single statement and return it with its id."""
        columns = self._note_columns(
            title=title, content=content, tags=tags, audio_path=audio_path, image_paths=image_paths
        )
        async with self._session() as db:
            note = Note(timestamp=timestamp or utc_now(), **columns)
            db.add(note)
            await db.flush()
            return NoteRead.model_validate(note)

    async def update_note(
        self,
        note_id: int,
        *,
        title: str,
        content: str,
        tags: Sequence[str],
        audio_path: str | None,
        image_paths: Sequence[str],
        timestamp: datetime | None = None,
    ) -> NoteRead | None:
        """
        Rewrite a note's columns in one UPDATE.

        Returns None when the note does not exist.
        """
        columns = self._note_columns(
            title=title, content=content, tags=tags, audio_path=audio_path, image_paths=image_paths
        )
        async with self._session() as db:
            note = await db.get(Note, note_id)
            if note is None:
                return None
            for key, value in columns.items():
                setattr(note, key, value)
            if timestamp is not None:
                note.timestamp = timestamp
            await db.flush()
            return NoteRead.model_validate(note)

    async def get_note(self, note_id: int) -> NoteRead | None:
        async with self._session() as db:
            note = await db.get(Note, note_id)
            return NoteRead.model_validate(note) if note else None

    async def list_notes(self) -> list[NoteRead]:
        """All notes, newest first."""
        async with self._session() as db:
            result = await db.execute(select(Note).order_by(Note.timestamp.desc(), Note.id.desc()))
            return [NoteRead.model_validate(n) for n in result.scalars()]

    async def get_notes_by_ids(self, ids: Iterable[int]) -> list[NoteRead]:
        """
        Notes whose id is in ``ids``. Missing ids are simply absent.

        No ordering is promised; callers that care re-sort by their own id list.
        """
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []
        async with self._session() as db:
            result = await db.execute(select(Note).where(Note.id.in_(wanted)))
            return [NoteRead.model_validate(n) for n in result.scalars()]

    async def search_notes(self, query: str) -> list[NoteRead]:
        """
        Case-insensitive substring search over title, content and tags.

        ``%`` and ``_`` in ``query`` match literally. Tags are matched one by
        one, never against their JSON encoding.
        """
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        tag = func.json_each(Note.tags).table_valued("value")
        tag_matches = select(1).select_from(tag).where(tag.c.value.ilike(pattern, escape="\\")).exists()
        async with self._session() as db:
            stmt = (
                select(Note)
                .where(
                    or_(
                        Note.title.ilike(pattern, escape="\\"),
                        Note.content.ilike(pattern, escape="\\"),
                        tag_matches,
                    )
                )
                .order_by(Note.timestamp.desc(), Note.id.desc())
            )
            result = await db.execute(stmt)
            return [NoteRead.model_validate(n) for n in result.scalars()]

    async def count_notes(self) -> int:
        async with self._session() as db:
            return await db.scalar(select(func.count()).select_from(Note)) or 0

    async def delete_note(self, note_id: int) -> NoteRead | None:
        """
        Delete a note. Deleting a missing id is not an error.

        Returns the deleted note so the caller can release its media files.
        """
        async with self._session() as db:
            note = await db.get(Note, note_id)
            if note is None:
                return None
            deleted = NoteRead.model_validate(note)
            await db.delete(note)
            return deleted

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    async def get_or_create_chat_session(self, user_id: int) -> ChatSessionRead:
        """Most recent session of the user; a new one only when none exists."""
        async with self._session() as db:
            stmt = (
                select(ChatSession)
                .where(ChatSession.user_id == user_id)
                .order_by(ChatSession.started_at.desc(), ChatSession.id.desc())
                .limit(1)
            )
            session = await db.scalar(stmt)
            if session is None:
                session = ChatSession(user_id=user_id)
                db.add(session)
                await db.flush()
                logger.info("Started chat session %s for user %s", session.id, user_id)
            return ChatSessionRead.model_validate(session)

    async def save_message(
        self,
        session_id: int,
        type: MessageType | str,
        content: str,
        note_ids: Sequence[int] = (),
        image_paths: Sequence[str] = (),
    ) -> MessageRead:
        """Append a message. Messages are never updated afterwards."""
        message_type = MessageType(type)
        image_paths = list(image_paths)
        async with self._session() as db:
            message = Message(
                session_id=session_id,
                type=message_type.value,
                content=content,
                note_ids=list(note_ids),
                has_images=len(image_paths) > 0,
                image_paths=image_paths,
            )
            db.add(message)
            await db.flush()
            notes = await self._load_notes(db, message.note_ids)
            return self._message_read(message, notes)

    async def get_messages_for_session(self, session_id: int) -> list[MessageRead]:
        """Messages in the order they were written, each with its surviving notes."""
        async with self._session() as db:
            stmt = (
                select(Message)
                .where(Message.session_id == session_id)
                .order_by(Message.timestamp.asc(), Message.id.asc())
            )
            messages = list((await db.execute(stmt)).scalars())
            referenced = [note_id for m in messages for note_id in m.note_ids or []]
            notes = await self._load_notes(db, referenced)
            return [self._message_read(m, notes) for m in messages]

    @staticmethod
    async def _load_notes(db: AsyncSession, ids: Iterable[int]) -> dict[int, NoteRead]:
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return {}
        result = await db.execute(select(Note).where(Note.id.in_(wanted)))
        return {n.id: NoteRead.model_validate(n) for n in result.scalars()}

    @staticmethod
    def _message_read(message: Message, notes: dict[int, NoteRead]) -> MessageRead:
        note_ids = list(message.note_ids or [])
        return MessageRead(
            id=message.id,
            session_id=message.session_id,
            type=message.type,
            content=message.content,
            timestamp=message.timestamp,
            referenced_note_ids=note_ids,
            has_images=message.has_images,
            image_paths=list(message.image_paths or []),
            # Weak reference: notes deleted since are dropped, not an error
            notes=[notes[i] for i in dict.fromkeys(note_ids) if i in notes],
        )
