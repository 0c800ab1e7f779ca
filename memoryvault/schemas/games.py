"""Schemas for the ephemeral game and reminiscence entities. None of these are persisted."""

from pydantic import BaseModel, Field

from memoryvault.schemas.base import FrozenSchema
from memoryvault.schemas.notes import NoteRead


class QuizQuestion(FrozenSchema):
    """One generated question. The answer fields are filled once, on submit."""

    id: int
    question: str
    correct_answer: str
    related_note_id: int
    user_answer: str | None = None
    is_correct: bool | None = None
    feedback: str | None = None

    @property
    def answered(self) -> bool:
        return self.user_answer is not None


class MemoryCompletionGame(FrozenSchema):
    """A note split by the model into a visible part and a part to recall."""

    id: int
    note: NoteRead
    partial_memory: str
    expected_completion: str
    user_completion: str | None = None
    is_correct: bool | None = None
    feedback: str | None = None


class ReminiscenceSession(FrozenSchema):
    """A themed narrative over an ordered subset of the user's notes."""

    title: str
    narrative: str
    notes: tuple[NoteRead, ...] = ()
    prompting_questions: tuple[str, ...] = ()


# Request schemas
class QuizAnswerRequest(BaseModel):
    answer: str = Field(..., min_length=1, max_length=2000)


class CompletionAnswerRequest(BaseModel):
    completion: str = Field(..., min_length=1, max_length=4000)
