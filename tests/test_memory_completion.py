"""Tests for the memory completion game."""

import json
import random

import pytest

from memoryvault.errors import InsufficientData, SessionBusy
from memoryvault.services.sampling import pick_note
from memoryvault.sessions.completion import CompletionStatus, MemoryCompletionMachine


def completion_reply(partial: str = "We drove to [___]", expected: str = "the coast") -> str:
    return json.dumps({"partialMemory": partial, "expectedCompletion": expected})


@pytest.fixture
def game(store, gateway, settings) -> MemoryCompletionMachine:
    return MemoryCompletionMachine(store, gateway, settings, rng=random.Random(7))


def test_pick_note_is_seedable():
    notes = list(range(10))

    assert pick_note(notes, random.Random(3)) == pick_note(notes, random.Random(3))
    with pytest.raises(InsufficientData):
        pick_note([])


async def test_game_needs_a_note(game):
    with pytest.raises(InsufficientData):
        await game.generate()

    assert game.state.status == CompletionStatus.ERRORED


async def test_game_uses_one_of_the_notes(game, gateway, make_note):
    notes = [await make_note(content=f"Story {i}") for i in range(3)]
    gateway.script(completion_reply())

    state = await game.generate()

    assert state.status == CompletionStatus.AWAITING_COMPLETION
    assert state.game.note.id in {n.id for n in notes}
    assert state.game.partial_memory == "We drove to [___]"
    assert f"**Note Content:** {state.game.note.content}" in gateway.prompts[0]


async def test_completion_is_graded_once(game, gateway, make_note):
    await make_note(content="We drove to the coast")
    gateway.script(completion_reply(), json.dumps({"isCorrect": True, "feedback": "Yes, the coast!"}))
    await game.generate()

    state = await game.submit_completion("the seaside")

    assert state.status == CompletionStatus.GRADED
    assert state.game.user_completion == "the seaside"
    assert state.game.is_correct is True
    assert "the seaside" in gateway.prompts[-1]
    with pytest.raises(SessionBusy):
        await game.submit_completion("again")


async def test_empty_completion_is_rejected(game, gateway, make_note):
    await make_note()
    gateway.script(completion_reply())
    await game.generate()

    with pytest.raises(InsufficientData):
        await game.submit_completion("   ")


async def test_new_game_gets_new_id(game, gateway, make_note):
    await make_note()
    gateway.script(completion_reply(), completion_reply())

    first = (await game.generate()).game
    second = (await game.generate()).game

    assert second.id == first.id + 1


async def test_reset(game, gateway, make_note):
    await make_note()
    gateway.script(completion_reply())
    await game.generate()

    assert game.reset().status == CompletionStatus.IDLE
    assert game.state.game is None
