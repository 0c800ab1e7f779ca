"""
Response shapes the model is instructed to return.

Field names follow the camelCase keys written in the prompts; validation is
strict so a wrong type never slips through as a truthy string.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr


class Payload(BaseModel):
    """Base for model payloads: aliases on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class QuizQuestionPayload(Payload):
    question: StrictStr = Field(..., min_length=1)
    correct_answer: StrictStr = Field(..., alias="correctAnswer", min_length=1)
    related_note_id: StrictInt = Field(..., alias="relatedNoteId")


class QuizPayload(Payload):
    questions: list[QuizQuestionPayload] = Field(..., min_length=1)


class GradePayload(Payload):
    is_correct: StrictBool = Field(..., alias="isCorrect")
    feedback: StrictStr


class CompletionPayload(Payload):
    partial_memory: StrictStr = Field(..., alias="partialMemory")
    expected_completion: StrictStr = Field(..., alias="expectedCompletion")


class NoteRefPayload(Payload):
    id: StrictInt
    title: StrictStr | None = None


class ReminiscencePayload(Payload):
    title: StrictStr
    narrative: StrictStr
    notes: list[NoteRefPayload]
    prompting_questions: list[StrictStr] = Field(..., alias="promptingQuestions")
