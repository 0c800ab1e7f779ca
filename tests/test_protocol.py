"""Tests for prompt building and model reply parsing."""

import pytest

from memoryvault.errors import ProtocolError
from memoryvault.schemas.protocol import GradePayload, QuizPayload, ReminiscencePayload
from memoryvault.services.protocol import (
    Err,
    Ok,
    build_chat_prompt,
    build_quiz_prompt,
    build_reminiscence_prompt,
    expect_payload,
    extract_note_references,
    parse_payload,
    strip_code_fences,
)


def test_fenced_reply_parses():
    result = parse_payload('```json\n{"isCorrect":true,"feedback":"Nice"}\n```', GradePayload)

    assert isinstance(result, Ok)
    assert result.payload.is_correct is True
    assert result.payload.feedback == "Nice"


def test_non_json_is_malformed():
    result = parse_payload("not json", GradePayload)

    assert isinstance(result, Err)
    assert result.reason == ProtocolError.MALFORMED_RESPONSE
    assert result.raw == "not json"

    with pytest.raises(ProtocolError) as exc_info:
        expect_payload("not json", GradePayload)
    assert exc_info.value.reason == ProtocolError.MALFORMED_RESPONSE
    assert exc_info.value.raw == "not json"


def test_object_wrapped_in_prose_is_repaired():
    raw = 'Sure! Here you go: {"isCorrect": false, "feedback": "Almost"} Hope that helps.'

    payload = expect_payload(raw, GradePayload)

    assert payload.is_correct is False


@pytest.mark.parametrize(
    "raw",
    [
        '{"isCorrect": "yes", "feedback": "x"}',
        '{"feedback": "x"}',
        '{"isCorrect": true, "feedback": 3}',
        "[]",
    ],
)
def test_wrong_shape_is_malformed(raw):
    assert isinstance(parse_payload(raw, GradePayload), Err)


def test_quiz_payload_requires_integer_note_ids():
    raw = '{"questions": [{"question": "Q", "correctAnswer": "A", "relatedNoteId": "3"}]}'

    assert isinstance(parse_payload(raw, QuizPayload), Err)


def test_reminiscence_payload_uses_camel_case_keys():
    raw = """```
    {"title": "Summers", "narrative": "Once...", "notes": [{"id": 2, "title": "Lake"}, {"id": 1}],
     "promptingQuestions": ["Who was there?"]}
    ```"""

    payload = expect_payload(raw, ReminiscencePayload)

    assert [n.id for n in payload.notes] == [2, 1]
    assert payload.prompting_questions == ["Who was there?"]


def test_strip_code_fences():
    assert strip_code_fences("  ```JSON\n{}\n```  ") == "{}"


def test_extract_note_references_keeps_known_ids_in_order():
    text = "See [Note ID: 3] and [Note ID: 1]. Again [note id:3], and [Note ID: 9]."

    assert extract_note_references(text, [1, 3]) == [3, 1]


def test_prompts_state_the_reply_shape():
    quiz = build_quiz_prompt("CONTEXT", 4)
    assert "exactly 4" in quiz and "CONTEXT" in quiz
    assert '"relatedNoteId"' in quiz and '"correctAnswer"' in quiz

    reminiscence = build_reminiscence_prompt("CONTEXT")
    assert '"promptingQuestions"' in reminiscence and "CONTEXT" in reminiscence


def test_chat_prompt_includes_history_and_message():
    prompt = build_chat_prompt("Ada", "CONTEXT", [], "What did I eat?", has_images=True)

    assert "Ada" in prompt
    assert "[Note ID: n]" in prompt
    assert "(none)" in prompt
    assert prompt.endswith("User: What did I eat?\nAssistant:")
    assert "attached an image" in prompt
