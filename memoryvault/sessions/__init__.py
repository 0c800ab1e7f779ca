"""State machines for chat, quiz, memory completion and reminiscence."""

from memoryvault.sessions.chat import ChatMachine, ChatState, ChatStatus
from memoryvault.sessions.completion import CompletionState, CompletionStatus, MemoryCompletionMachine
from memoryvault.sessions.quiz import QuizMachine, QuizState, QuizStatus
from memoryvault.sessions.reminiscence import ReminiscenceMachine, ReminiscenceState, ReminiscenceStatus

__all__ = [
    "ChatMachine",
    "ChatState",
    "ChatStatus",
    "CompletionState",
    "CompletionStatus",
    "MemoryCompletionMachine",
    "QuizMachine",
    "QuizState",
    "QuizStatus",
    "ReminiscenceMachine",
    "ReminiscenceState",
    "ReminiscenceStatus",
]
