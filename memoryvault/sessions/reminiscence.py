"""Reminiscence: a themed story woven from several notes."""

import logging
from collections.abc import Iterable, Sequence
from enum import Enum as PyEnum

from memoryvault.config import Settings
from memoryvault.errors import InsufficientData, ProtocolError, SessionBusy
from memoryvault.schemas.base import FrozenSchema
from memoryvault.schemas.games import ReminiscenceSession
from memoryvault.schemas.notes import NoteRead
from memoryvault.schemas.protocol import ReminiscencePayload
from memoryvault.services.context import ContextSummarizer
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import InferenceGateway
from memoryvault.services.protocol import build_reminiscence_prompt
from memoryvault.sessions.base import SessionMachine, generate_payload

logger = logging.getLogger(__name__)


class ReminiscenceStatus(str, PyEnum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    ERRORED = "errored"


class ReminiscenceState(FrozenSchema):
    status: ReminiscenceStatus = ReminiscenceStatus.IDLE
    session: ReminiscenceSession | None = None
    error: str | None = None


def order_by_ids(ids: Iterable[int], notes: Sequence[NoteRead]) -> list[NoteRead]:
    """
    Arrange ``notes`` in the order of ``ids``.

    Duplicate ids keep their first position; ids without a note are dropped.
    """
    by_id = {note.id: note for note in notes}
    return [by_id[i] for i in dict.fromkeys(ids) if i in by_id]


# =============================================================================
# TRANSITIONS
# =============================================================================


def start_generation(state: ReminiscenceState) -> ReminiscenceState:
    if state.status == ReminiscenceStatus.GENERATING:
        raise SessionBusy("A memory story is already being written.")
    return ReminiscenceState(status=ReminiscenceStatus.GENERATING)


def session_ready(state: ReminiscenceState, session: ReminiscenceSession) -> ReminiscenceState:
    return ReminiscenceState(status=ReminiscenceStatus.READY, session=session)


def generation_failed(state: ReminiscenceState, message: str) -> ReminiscenceState:
    return ReminiscenceState(status=ReminiscenceStatus.ERRORED, error=message)


# =============================================================================
# MACHINE
# =============================================================================


class ReminiscenceMachine(SessionMachine[ReminiscenceState]):
    """Generates one reminiscence session at a time."""

    def __init__(
        self,
        store: EntityStore,
        summarizer: ContextSummarizer,
        gateway: InferenceGateway,
        settings: Settings,
    ):
        super().__init__(ReminiscenceState(), settings)
        self.store = store
        self.summarizer = summarizer
        self.gateway = gateway

    async def generate(self) -> ReminiscenceState:
        """
        Write a new themed session.

        Raises:
            InsufficientData: If there are fewer notes than ``reminiscence_min_notes``
            GatewayError / ProtocolError: If the model fails or picks no existing note
        """
        self._state = start_generation(self._state)
        token = self._guard.issue()
        return await self._complete(token, self._generate(), session_ready, generation_failed)

    async def _generate(self) -> ReminiscenceSession:
        notes = await self.store.list_notes()
        minimum = self.settings.reminiscence_min_notes
        if len(notes) < minimum:
            raise InsufficientData(
                f"You need at least {minimum} memories to create a reminiscence session. Keep adding memories!"
            )
        prompt = build_reminiscence_prompt(self.summarizer.summarize(notes))
        payload = await generate_payload(self.gateway, self.settings, prompt, ReminiscencePayload)

        # Re-read: notes may have been deleted while the model was writing
        ids = [ref.id for ref in payload.notes]
        ordered = order_by_ids(ids, await self.store.get_notes_by_ids(ids))
        if not ordered:
            raise ProtocolError("The story does not refer to any existing memory")
        if len(ordered) < len(ids):
            logger.info("Resolved %d of %d referenced notes", len(ordered), len(ids))
        return ReminiscenceSession(
            title=payload.title,
            narrative=payload.narrative,
            notes=tuple(ordered),
            prompting_questions=tuple(payload.prompting_questions),
        )
