"""Tests for the quiz state machine."""

import asyncio
import json

import pytest

from conftest import wait_for
from memoryvault.errors import GatewayError, GatewayErrorReason, InsufficientData, ProtocolError, SessionBusy
from memoryvault.sessions.quiz import QuizMachine, QuizStatus


def quiz_reply(*note_ids: int) -> str:
    return json.dumps(
        {
            "questions": [
                {"question": f"Question {i}?", "correctAnswer": f"Answer {i}", "relatedNoteId": note_id}
                for i, note_id in enumerate(note_ids, start=1)
            ]
        }
    )


def grade_reply(correct: bool, feedback: str = "Well remembered!") -> str:
    return json.dumps({"isCorrect": correct, "feedback": feedback})


@pytest.fixture
def quiz(store, summarizer, gateway, settings) -> QuizMachine:
    return QuizMachine(store, summarizer, gateway, settings)


async def test_quiz_needs_a_note(quiz):
    with pytest.raises(InsufficientData):
        await quiz.generate()

    assert quiz.state.status == QuizStatus.ERRORED
    assert "add some memories" in quiz.state.error


async def test_single_note_quiz_references_that_note(quiz, gateway, make_note):
    note = await make_note()
    gateway.script(quiz_reply(note.id, 99, note.id))

    state = await quiz.generate(5)

    assert state.status == QuizStatus.IN_PROGRESS
    assert state.total == 2
    assert {q.related_note_id for q in state.questions} == {note.id}
    assert [q.id for q in state.questions] == [1, 2]
    assert gateway.load_calls == 1
    assert f"[Note ID: {note.id}]" in gateway.prompts[0]


async def test_quiz_keeps_at_most_count_questions(quiz, gateway, make_note):
    note = await make_note()
    gateway.script(quiz_reply(note.id, note.id, note.id))

    state = await quiz.generate(2)

    assert state.total == 2


async def test_malformed_reply_is_retried_once(quiz, gateway, make_note):
    note = await make_note()
    gateway.script("Here are some questions!", quiz_reply(note.id))

    state = await quiz.generate()

    assert state.status == QuizStatus.IN_PROGRESS
    assert len(gateway.prompts) == 2
    assert gateway.prompts[0] == gateway.prompts[1]


async def test_two_malformed_replies_fail(quiz, gateway, make_note):
    await make_note()
    gateway.script("nope", "still nope")

    with pytest.raises(ProtocolError):
        await quiz.generate()

    assert quiz.state.status == QuizStatus.ERRORED
    assert quiz.state.error


async def test_questions_about_unknown_notes_fail(quiz, gateway, make_note):
    await make_note()
    gateway.script(quiz_reply(41, 42))

    with pytest.raises(ProtocolError):
        await quiz.generate()


async def test_full_game(quiz, gateway, make_note):
    note = await make_note()
    gateway.script(quiz_reply(note.id, note.id), grade_reply(True), grade_reply(False, "It was Paris."))
    await quiz.generate()
    assert quiz.state.progress == 50.0

    state = await quiz.submit_answer("  Answer 1 ")
    assert state.questions[0].user_answer == "Answer 1"
    assert state.questions[0].is_correct is True
    assert state.score == 1

    with pytest.raises(SessionBusy):
        await quiz.submit_answer("again")

    state = quiz.next_question()
    assert state.current_index == 1
    assert state.progress == 100.0

    await quiz.submit_answer("London")
    state = quiz.next_question()

    assert state.status == QuizStatus.COMPLETE
    assert state.score == 1
    assert state.questions[1].feedback == "It was Paris."


async def test_next_requires_an_answer(quiz, gateway, make_note):
    note = await make_note()
    gateway.script(quiz_reply(note.id))
    await quiz.generate()

    with pytest.raises(SessionBusy):
        quiz.next_question()


async def test_grading_failure_leaves_question_open(quiz, gateway, make_note):
    note = await make_note()
    gateway.script(
        quiz_reply(note.id),
        GatewayError("device busy", GatewayErrorReason.INFERENCE_FAILED),
        grade_reply(True),
    )
    await quiz.generate()

    with pytest.raises(GatewayError):
        await quiz.submit_answer("Answer 1")

    assert quiz.state.status == QuizStatus.IN_PROGRESS
    assert not quiz.state.questions[0].answered
    assert quiz.state.error

    state = await quiz.submit_answer("Answer 1")
    assert state.questions[0].is_correct is True
    assert state.error is None


async def test_generate_while_generating_is_rejected(quiz, gateway, make_note):
    note = await make_note()
    gateway.gate = asyncio.Event()
    gateway.script(quiz_reply(note.id))
    first = asyncio.create_task(quiz.generate())
    await wait_for(lambda: gateway.prompts)

    with pytest.raises(SessionBusy):
        await quiz.generate()

    gateway.gate.set()
    assert (await first).status == QuizStatus.IN_PROGRESS


async def test_reset_discards_pending_quiz(quiz, gateway, make_note):
    note = await make_note()
    gateway.gate = asyncio.Event()
    gateway.script(quiz_reply(note.id))
    pending = asyncio.create_task(quiz.generate())
    await wait_for(lambda: gateway.prompts)

    quiz.reset()
    gateway.gate.set()
    await pending

    assert quiz.state.status == QuizStatus.IDLE
    assert quiz.state.questions == ()
