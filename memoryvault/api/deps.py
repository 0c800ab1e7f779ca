"""
FastAPI dependencies.

Everything the routes need is built once in the application lifespan and kept
on ``app.state``; these helpers hand it out. There is no global store or
gateway, so tests can run any number of independent apps side by side.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from memoryvault.config import Settings
from memoryvault.schemas.user import UserRead
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import ExclusiveGateway
from memoryvault.services.media import MediaManager
from memoryvault.services.notes import NoteService
from memoryvault.sessions.chat import ChatMachine
from memoryvault.sessions.completion import MemoryCompletionMachine
from memoryvault.sessions.quiz import QuizMachine
from memoryvault.sessions.reminiscence import ReminiscenceMachine


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_media(request: Request) -> MediaManager:
    return request.app.state.media


def get_note_service(request: Request) -> NoteService:
    return request.app.state.notes


def get_gateway(request: Request) -> ExclusiveGateway:
    return request.app.state.gateway


def get_chat(request: Request) -> ChatMachine:
    return request.app.state.chat


def get_quiz(request: Request) -> QuizMachine:
    return request.app.state.quiz


def get_memory_game(request: Request) -> MemoryCompletionMachine:
    return request.app.state.memory_game


def get_reminiscence(request: Request) -> ReminiscenceMachine:
    return request.app.state.reminiscence


async def get_current_user(store: Annotated[EntityStore, Depends(get_store)]) -> UserRead:
    """
    The installation's user.

    Raises 404 until onboarding has created one.
    """
    user = await store.get_user()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No user yet. Complete onboarding first.",
        )
    return user


# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_settings_dep)]
Store = Annotated[EntityStore, Depends(get_store)]
Media = Annotated[MediaManager, Depends(get_media)]
Notes = Annotated[NoteService, Depends(get_note_service)]
Gateway = Annotated[ExclusiveGateway, Depends(get_gateway)]
CurrentUser = Annotated[UserRead, Depends(get_current_user)]
Chat = Annotated[ChatMachine, Depends(get_chat)]
Quiz = Annotated[QuizMachine, Depends(get_quiz)]
MemoryGame = Annotated[MemoryCompletionMachine, Depends(get_memory_game)]
Reminiscence = Annotated[ReminiscenceMachine, Depends(get_reminiscence)]
