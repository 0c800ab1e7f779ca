"""Quiz: questions generated from the notes, answered and graded one at a time."""

import logging
from collections.abc import Collection
from enum import Enum as PyEnum

from pydantic import computed_field

from memoryvault.config import Settings
from memoryvault.errors import InsufficientData, ProtocolError, SessionBusy
from memoryvault.schemas.base import FrozenSchema
from memoryvault.schemas.games import QuizQuestion
from memoryvault.schemas.protocol import GradePayload, QuizPayload
from memoryvault.services.context import ContextSummarizer
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import InferenceGateway
from memoryvault.services.protocol import build_quiz_grading_prompt, build_quiz_prompt
from memoryvault.sessions.base import SessionMachine, generate_payload

logger = logging.getLogger(__name__)


class QuizStatus(str, PyEnum):
    IDLE = "idle"
    GENERATING = "generating"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    ERRORED = "errored"


class QuizState(FrozenSchema):
    """One quiz game. Questions never change except their answer fields."""

    status: QuizStatus = QuizStatus.IDLE
    questions: tuple[QuizQuestion, ...] = ()
    current_index: int = 0
    grading: bool = False
    error: str | None = None

    @computed_field
    @property
    def total(self) -> int:
        return len(self.questions)

    @computed_field
    @property
    def score(self) -> int:
        return sum(1 for q in self.questions if q.is_correct)

    @computed_field
    @property
    def progress(self) -> float:
        """Percent through the quiz, counting the current question."""
        if not self.questions:
            return 0.0
        return (self.current_index + 1) / len(self.questions) * 100

    @property
    def current_question(self) -> QuizQuestion | None:
        if self.status != QuizStatus.IN_PROGRESS:
            return None
        return self.questions[self.current_index]


# =============================================================================
# TRANSITIONS
# =============================================================================


def start_generation(state: QuizState) -> QuizState:
    if state.status == QuizStatus.GENERATING:
        raise SessionBusy("A quiz is already being created.")
    return QuizState(status=QuizStatus.GENERATING)


def questions_ready(state: QuizState, questions: tuple[QuizQuestion, ...]) -> QuizState:
    return QuizState(status=QuizStatus.IN_PROGRESS, questions=questions, current_index=0)


def generation_failed(state: QuizState, message: str) -> QuizState:
    return QuizState(status=QuizStatus.ERRORED, error=message)


def start_grading(state: QuizState) -> QuizState:
    question = state.current_question
    if question is None:
        raise SessionBusy("There is no question to answer right now.")
    if state.grading:
        raise SessionBusy("Your answer is still being checked.")
    if question.answered:
        raise SessionBusy("This question has already been answered.")
    return state.model_copy(update={"grading": True, "error": None})


def answer_recorded(state: QuizState, answer: str, grade: GradePayload) -> QuizState:
    index = state.current_index
    answered = state.questions[index].model_copy(
        update={"user_answer": answer, "is_correct": grade.is_correct, "feedback": grade.feedback}
    )
    questions = state.questions[:index] + (answered,) + state.questions[index + 1 :]
    return state.model_copy(update={"questions": questions, "grading": False})


def grading_failed(state: QuizState, message: str) -> QuizState:
    # The question stays unanswered so the same answer can be submitted again
    return state.model_copy(update={"grading": False, "error": message})


def advance(state: QuizState) -> QuizState:
    question = state.current_question
    if question is None or not question.answered:
        raise SessionBusy("Answer the current question first.")
    if state.current_index + 1 >= len(state.questions):
        return state.model_copy(update={"status": QuizStatus.COMPLETE, "error": None})
    return state.model_copy(update={"current_index": state.current_index + 1, "error": None})


def build_questions(payload: QuizPayload, note_ids: Collection[int], limit: int) -> tuple[QuizQuestion, ...]:
    """
    Keep questions tied to an existing note, at most ``limit`` of them.

    Raises:
        ProtocolError: If no question references a known note
    """
    kept = [q for q in payload.questions if q.related_note_id in note_ids][:limit]
    if not kept:
        raise ProtocolError("No generated question refers to one of the user's notes")
    if len(kept) < len(payload.questions):
        logger.info("Kept %d of %d generated questions", len(kept), len(payload.questions))
    return tuple(
        QuizQuestion(
            id=i,
            question=q.question,
            correct_answer=q.correct_answer,
            related_note_id=q.related_note_id,
        )
        for i, q in enumerate(kept, start=1)
    )


# =============================================================================
# MACHINE
# =============================================================================


class QuizMachine(SessionMachine[QuizState]):
    """Drives one quiz game at a time."""

    def __init__(
        self,
        store: EntityStore,
        summarizer: ContextSummarizer,
        gateway: InferenceGateway,
        settings: Settings,
    ):
        super().__init__(QuizState(), settings)
        self.store = store
        self.summarizer = summarizer
        self.gateway = gateway

    async def generate(self, count: int | None = None) -> QuizState:
        """
        Create a fresh quiz of up to ``count`` questions.

        Raises:
            InsufficientData: If there are no notes
            GatewayError / ProtocolError: If the model fails twice in a row
        """
        count = count or self.settings.quiz_default_questions
        self._state = start_generation(self._state)
        token = self._guard.issue()
        return await self._complete(token, self._generate(count), questions_ready, generation_failed)

    async def _generate(self, count: int) -> tuple[QuizQuestion, ...]:
        notes = await self.store.list_notes()
        if len(notes) < self.settings.game_min_notes:
            raise InsufficientData("No memories found to create a quiz. Please add some memories first!")
        prompt = build_quiz_prompt(self.summarizer.summarize(notes), count)
        payload = await generate_payload(self.gateway, self.settings, prompt, QuizPayload)
        return build_questions(payload, {n.id for n in notes}, count)

    async def submit_answer(self, answer: str) -> QuizState:
        """Grade the answer to the current question. Each question is graded once."""
        answer = answer.strip()
        if not answer:
            raise InsufficientData("Type your answer before submitting.")
        self._state = start_grading(self._state)
        question = self._state.current_question
        token = self._guard.issue()
        return await self._complete(
            token,
            self._grade(question, answer),
            lambda state, grade: answer_recorded(state, answer, grade),
            grading_failed,
        )

    async def _grade(self, question: QuizQuestion, answer: str) -> GradePayload:
        note = await self.store.get_note(question.related_note_id)
        prompt = build_quiz_grading_prompt(question.question, question.correct_answer, answer, note)
        return await generate_payload(self.gateway, self.settings, prompt, GradePayload)

    def next_question(self) -> QuizState:
        """Move on; past the last question the quiz is complete."""
        self._state = advance(self._state)
        return self._state
