"""Reminiscence routes."""

from fastapi import APIRouter

from memoryvault.api.deps import Reminiscence
from memoryvault.sessions.reminiscence import ReminiscenceState

router = APIRouter(prefix="/reminiscence", tags=["reminiscence"])


@router.get("", response_model=ReminiscenceState)
async def get_session(reminiscence: Reminiscence) -> ReminiscenceState:
    return reminiscence.state


@router.post("", response_model=ReminiscenceState)
async def generate_session(reminiscence: Reminiscence) -> ReminiscenceState:
    """Write a themed story from several notes. Needs at least three notes."""
    return await reminiscence.generate()


@router.delete("", response_model=ReminiscenceState)
async def reset_session(reminiscence: Reminiscence) -> ReminiscenceState:
    return reminiscence.reset()
