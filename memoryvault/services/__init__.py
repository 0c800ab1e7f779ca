"""Core services: storage, media, context, inference and the prompt protocol."""

from memoryvault.services.context import ContextSummarizer
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import ExclusiveGateway, InferenceGateway, OllamaGateway
from memoryvault.services.media import MediaManager
from memoryvault.services.notes import NoteService

__all__ = [
    "ContextSummarizer",
    "EntityStore",
    "ExclusiveGateway",
    "InferenceGateway",
    "MediaManager",
    "NoteService",
    "OllamaGateway",
]
