"""
Prompt/response protocol.

Builds the task prompts (each spelling out a strict JSON reply shape) and turns
raw model text back into typed payloads. This is the one place where model
unreliability is contained: anything that does not match the requested shape
becomes ``Err(MalformedResponse)`` / ``ProtocolError``. Retrying is left to
the calling session.
"""

import json
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from memoryvault.errors import ProtocolError
from memoryvault.schemas.chat import MessageRead
from memoryvault.schemas.games import MemoryCompletionGame
from memoryvault.schemas.notes import NoteRead

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_NOTE_CITATION = re.compile(r"\[?\s*Note\s+ID\s*:\s*(\d+)\s*\]?", re.IGNORECASE)

DEFAULT_IMAGE_PROMPT = "Please analyze and discuss these images in relation to my memories."


# =============================================================================
# PARSING
# =============================================================================


@dataclass(frozen=True)
class Ok(Generic[P]):
    payload: P


@dataclass(frozen=True)
class Err:
    """The model reply did not match the expected shape."""

    reason: str
    detail: str
    raw: str


ParseResult = Ok[P] | Err


def strip_code_fences(raw: str) -> str:
    """Remove Markdown code-fence markers (```json / ```) and surrounding whitespace."""
    return _FENCE.sub("", raw).strip()


def _load_json(text: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Repair: a single object wrapped in chatter
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(text[start : end + 1])


def parse_payload(raw: str, schema: type[P]) -> ParseResult:
    """Parse raw model text into ``schema`` without raising."""
    text = strip_code_fences(raw)
    try:
        data = _load_json(text)
    except json.JSONDecodeError as e:
        return Err(ProtocolError.MALFORMED_RESPONSE, f"Response is not JSON: {e.msg}", raw)
    try:
        return Ok(schema.model_validate(data))
    except ValidationError as e:
        return Err(
            ProtocolError.MALFORMED_RESPONSE,
            f"Response does not match {schema.__name__}: {e.error_count()} error(s)",
            raw,
        )


def expect_payload(raw: str, schema: type[P]) -> P:
    """
    Parse raw model text into ``schema``.

    Raises:
        ProtocolError: If the text is not JSON or does not match the shape
    """
    result = parse_payload(raw, schema)
    if isinstance(result, Err):
        logger.warning("Malformed model response (%s): %.200r", result.detail, raw)
        raise ProtocolError(result.detail, raw=raw)
    return result.payload


def extract_note_references(text: str, known_ids: Iterable[int]) -> list[int]:
    """``[Note ID: n]`` citations in a chat reply, first-seen order, unknown ids dropped."""
    known = set(known_ids)
    found = (int(m) for m in _NOTE_CITATION.findall(text))
    return [note_id for note_id in dict.fromkeys(found) if note_id in known]


# =============================================================================
# PROMPTS
# =============================================================================


def build_quiz_prompt(context: str, count: int) -> str:
    return f"""
You are creating a friendly memory quiz from the user's personal notes.

**Instructions:**
1. Write exactly {count} short questions, each answerable from a single note below
2. Ask about meaningful details: people, places, feelings, what happened
3. Keep each correct answer brief (a few words)
4. Set "relatedNoteId" to the number shown as [Note ID: n] for the note the question comes from

**Available Notes (Memories):**
{context}

**Response Format:** Return a JSON object:
{{
  "questions": [
    {{ "question": "Your question here", "correctAnswer": "The answer", "relatedNoteId": 1 }}
  ]
}}

**Your JSON Response:**
""".strip()


def build_quiz_grading_prompt(
    question: str,
    correct_answer: str,
    user_answer: str,
    note: NoteRead | None = None,
) -> str:
    memory = f"\n**Original Memory:** {note.content}" if note else ""
    return f"""
You are an empathetic AI tutor evaluating a quiz answer about the user's own memories.
{memory}
**Question:** {question}
**Expected Answer:** {correct_answer}
**User's Answer:** {user_answer}

**Instructions:**
1. Decide whether the user's answer means the same thing as the expected answer
2. Be generous - look for meaning rather than exact words, accept synonyms and partial detail
3. Provide warm, encouraging feedback in one or two sentences
4. If incorrect: be gentle and remind them of the answer

**Response Format:** Return a JSON object:
{{
  "isCorrect": true/false,
  "feedback": "Your warm, encouraging response here"
}}

**Your JSON Response:**
""".strip()


def build_completion_prompt(note: NoteRead) -> str:
    return f"""
You are creating a memory completion game from the user's personal note.

**Instructions:**
1. Take the provided memory and create a partial version (show about 60-70% of it)
2. Hide a meaningful part that the user should remember
3. Provide the expected completion text
4. Make it engaging and test meaningful recall

**Note Title:** {note.title}
**Note Content:** {note.content}

**Response Format:** Return a JSON object:
{{
  "partialMemory": "The partial memory with [___] where completion should go",
  "expectedCompletion": "The text that should complete the memory"
}}

**Your JSON Response:**
""".strip()


def build_completion_grading_prompt(game: MemoryCompletionGame, user_completion: str) -> str:
    return f"""
You are an empathetic AI tutor evaluating a memory completion.

**Original Memory:** {game.note.content}
**Expected Completion:** {game.expected_completion}
**User's Completion:** {user_completion}

**Instructions:**
1. Determine if the user's completion captures the essence of the expected completion
2. Be generous - look for meaning rather than exact words
3. Provide warm, encouraging feedback
4. If correct: celebrate their memory
5. If incorrect: be gentle and show what they might have remembered

**Response Format:** Return a JSON object:
{{
  "isCorrect": true/false,
  "feedback": "Your warm, encouraging response here"
}}

**Your JSON Response:**
""".strip()


def build_reminiscence_prompt(context: str) -> str:
    return f"""
You are an expert in reminiscence therapy. Your task is to create a themed "memory album" from the user's notes.

**Instructions:**
1. Analyze the user's notes to find a recurring theme (e.g., "Family Gatherings," "Travels," "Childhood Pets," "Summer Holidays").
2. Select 3-5 notes that strongly relate to this theme.
3. Create a title for the session based on the theme.
4. Write a gentle, story-like narrative that weaves the selected notes together. The narrative should be warm, engaging, and feel like a story.
5. Generate 2-3 thoughtful, open-ended questions to prompt the user for reflection.
6. Your response MUST be a JSON object with the following structure:
    {{
      "title": "Your themed title here.",
      "narrative": "Your story-like narrative here.",
      "notes": [
        {{ "id": 1, "title": "Note Title 1" }},
        {{ "id": 5, "title": "Note Title 2" }}
      ],
      "promptingQuestions": [
        "Your first question here.",
        "Your second question here."
      ]
    }}

**Available Notes (Memories):**
{context}

**Your JSON Response:**
""".strip()


def build_chat_prompt(
    user_name: str,
    context: str,
    history: Sequence[MessageRead],
    message: str,
    *,
    has_images: bool = False,
) -> str:
    """Conversation prompt: persona, note context, recent turns and the new message."""
    turns = "\n".join(
        f"{'User' if m.type == 'user' else 'Assistant'}: {m.content}" for m in history
    )
    image_hint = (
        "\nThe user attached an image. Compare it with the memories that mention images when relevant."
        if has_images
        else ""
    )
    return f"""
You are a warm, patient companion helping {user_name} explore their personal memories.
Answer using the memories below. When a memory informs your answer, cite it as [Note ID: n].
If nothing relevant exists, say so kindly and never invent memories.{image_hint}

**Memories:**
{context}

**Conversation so far:**
{turns or "(none)"}

User: {message}
Assistant:
""".strip()
