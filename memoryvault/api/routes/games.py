"""Game routes: the memory quiz and memory completion."""

from fastapi import APIRouter, Query

from memoryvault.api.deps import MemoryGame, Quiz
from memoryvault.schemas.games import CompletionAnswerRequest, QuizAnswerRequest
from memoryvault.sessions.completion import CompletionState
from memoryvault.sessions.quiz import QuizState

router = APIRouter(prefix="/games", tags=["games"])


# =============================================================================
# QUIZ
# =============================================================================


@router.get("/quiz", response_model=QuizState)
async def get_quiz(quiz: Quiz) -> QuizState:
    return quiz.state


@router.post("/quiz", response_model=QuizState)
async def generate_quiz(
    quiz: Quiz,
    count: int | None = Query(None, ge=1, le=20),
) -> QuizState:
    """Generate a new quiz from the user's notes. Replaces any quiz in progress."""
    return await quiz.generate(count)


@router.post("/quiz/answer", response_model=QuizState)
async def answer_question(data: QuizAnswerRequest, quiz: Quiz) -> QuizState:
    return await quiz.submit_answer(data.answer)


@router.post("/quiz/next", response_model=QuizState)
async def next_question(quiz: Quiz) -> QuizState:
    return quiz.next_question()


@router.delete("/quiz", response_model=QuizState)
async def reset_quiz(quiz: Quiz) -> QuizState:
    return quiz.reset()


# =============================================================================
# MEMORY COMPLETION
# =============================================================================


@router.get("/memory", response_model=CompletionState)
async def get_memory_game(game: MemoryGame) -> CompletionState:
    return game.state


@router.post("/memory", response_model=CompletionState)
async def generate_memory_game(game: MemoryGame) -> CompletionState:
    """Pick a random note and hide part of it."""
    return await game.generate()


@router.post("/memory/answer", response_model=CompletionState)
async def complete_memory(data: CompletionAnswerRequest, game: MemoryGame) -> CompletionState:
    return await game.submit_completion(data.completion)


@router.delete("/memory", response_model=CompletionState)
async def reset_memory_game(game: MemoryGame) -> CompletionState:
    return game.reset()
