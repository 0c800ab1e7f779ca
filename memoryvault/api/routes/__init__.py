"""API routes package."""

from memoryvault.api.routes import chat, games, model, notes, reminiscence, users

__all__ = [
    "chat",
    "games",
    "model",
    "notes",
    "reminiscence",
    "users",
]
