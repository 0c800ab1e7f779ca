"""Memory completion: the model hides part of a note and the user fills it in."""

import itertools
import logging
import random
from enum import Enum as PyEnum

from memoryvault.config import Settings
from memoryvault.errors import InsufficientData, SessionBusy
from memoryvault.schemas.base import FrozenSchema
from memoryvault.schemas.games import MemoryCompletionGame
from memoryvault.schemas.notes import NoteRead
from memoryvault.schemas.protocol import CompletionPayload, GradePayload
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import InferenceGateway
from memoryvault.services.protocol import build_completion_grading_prompt, build_completion_prompt
from memoryvault.services.sampling import pick_note
from memoryvault.sessions.base import SessionMachine, generate_payload

logger = logging.getLogger(__name__)


class CompletionStatus(str, PyEnum):
    IDLE = "idle"
    GENERATING = "generating"
    AWAITING_COMPLETION = "awaiting_completion"
    GRADED = "graded"
    ERRORED = "errored"


class CompletionState(FrozenSchema):
    status: CompletionStatus = CompletionStatus.IDLE
    game: MemoryCompletionGame | None = None
    grading: bool = False
    error: str | None = None


# =============================================================================
# TRANSITIONS
# =============================================================================


def start_generation(state: CompletionState) -> CompletionState:
    if state.status == CompletionStatus.GENERATING:
        raise SessionBusy("A memory game is already being created.")
    return CompletionState(status=CompletionStatus.GENERATING)


def game_ready(state: CompletionState, game: MemoryCompletionGame) -> CompletionState:
    return CompletionState(status=CompletionStatus.AWAITING_COMPLETION, game=game)


def generation_failed(state: CompletionState, message: str) -> CompletionState:
    return CompletionState(status=CompletionStatus.ERRORED, error=message)


def start_grading(state: CompletionState) -> CompletionState:
    if state.status != CompletionStatus.AWAITING_COMPLETION or state.game is None:
        raise SessionBusy("There is no memory waiting to be completed.")
    if state.grading:
        raise SessionBusy("Your answer is still being checked.")
    return state.model_copy(update={"grading": True, "error": None})


def completion_graded(state: CompletionState, completion: str, grade: GradePayload) -> CompletionState:
    game = state.game.model_copy(
        update={"user_completion": completion, "is_correct": grade.is_correct, "feedback": grade.feedback}
    )
    return CompletionState(status=CompletionStatus.GRADED, game=game)


def grading_failed(state: CompletionState, message: str) -> CompletionState:
    return state.model_copy(update={"grading": False, "error": message})


# =============================================================================
# MACHINE
# =============================================================================


class MemoryCompletionMachine(SessionMachine[CompletionState]):
    """Drives one memory completion game at a time."""

    def __init__(
        self,
        store: EntityStore,
        gateway: InferenceGateway,
        settings: Settings,
        rng: random.Random | None = None,
    ):
        super().__init__(CompletionState(), settings)
        self.store = store
        self.gateway = gateway
        self.rng = rng
        self._game_ids = itertools.count(1)

    async def generate(self) -> CompletionState:
        """
        Start a new game on a randomly chosen note.

        Raises:
            InsufficientData: If there are no notes
            GatewayError / ProtocolError: If the model fails
        """
        self._state = start_generation(self._state)
        token = self._guard.issue()
        return await self._complete(token, self._generate(), game_ready, generation_failed)

    async def _generate(self) -> MemoryCompletionGame:
        notes = await self.store.list_notes()
        if len(notes) < self.settings.game_min_notes:
            raise InsufficientData(
                "No memories found to create completion game. Please add some memories first!"
            )
        note: NoteRead = pick_note(notes, self.rng)
        payload = await generate_payload(
            self.gateway, self.settings, build_completion_prompt(note), CompletionPayload
        )
        return MemoryCompletionGame(
            id=next(self._game_ids),
            note=note,
            partial_memory=payload.partial_memory,
            expected_completion=payload.expected_completion,
        )

    async def submit_completion(self, completion: str) -> CompletionState:
        """Grade the user's completion. Graded once per game."""
        completion = completion.strip()
        if not completion:
            raise InsufficientData("Type how the memory continues before submitting.")
        self._state = start_grading(self._state)
        game = self._state.game
        token = self._guard.issue()
        prompt = build_completion_grading_prompt(game, completion)
        return await self._complete(
            token,
            generate_payload(self.gateway, self.settings, prompt, GradePayload),
            lambda state, grade: completion_graded(state, completion, grade),
            grading_failed,
        )
