"""
Memory Vault FastAPI Application Entry Point.

Run with: uvicorn memoryvault.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memoryvault import __version__
from memoryvault.api.errors import register_exception_handlers
from memoryvault.api.routes import chat, games, model, notes, reminiscence, users
from memoryvault.config import Settings, get_settings
from memoryvault.services.context import ContextSummarizer
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import ExclusiveGateway, InferenceGateway, OllamaGateway
from memoryvault.services.media import MediaManager
from memoryvault.services.notes import NoteService
from memoryvault.sessions.chat import ChatMachine
from memoryvault.sessions.completion import MemoryCompletionMachine
from memoryvault.sessions.quiz import QuizMachine
from memoryvault.sessions.reminiscence import ReminiscenceMachine

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Set the root log level and format once at startup."""
    level = logging.DEBUG if settings.debug else settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # SQL echo is controlled by debug, not by the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def create_app(settings: Settings | None = None, gateway: InferenceGateway | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use instead of the environment's
        gateway: Inference gateway to use instead of the local Ollama server
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager for startup/shutdown."""
        # Startup
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        store = EntityStore(settings.database_url, echo=settings.debug)
        await store.initialize()

        inner = gateway
        owns_gateway = inner is None
        if inner is None:
            inner = OllamaGateway(
                settings.ollama_base_url,
                timeout=settings.gateway_timeout_seconds,
                keep_alive=settings.model_keep_alive,
            )
        exclusive = inner if isinstance(inner, ExclusiveGateway) else ExclusiveGateway(inner)

        media = MediaManager(settings.media_dir)
        summarizer = ContextSummarizer(store, settings)

        app.state.settings = settings
        app.state.store = store
        app.state.media = media
        app.state.gateway = exclusive
        app.state.notes = NoteService(store, media)
        app.state.chat = ChatMachine(store, summarizer, exclusive, settings)
        app.state.quiz = QuizMachine(store, summarizer, exclusive, settings)
        app.state.memory_game = MemoryCompletionMachine(store, exclusive, settings)
        app.state.reminiscence = ReminiscenceMachine(store, summarizer, exclusive, settings)
        logger.info("%s %s started (%s)", settings.app_name, __version__, settings.environment)

        yield

        # Shutdown
        for machine in (app.state.chat, app.state.quiz, app.state.memory_game, app.state.reminiscence):
            machine.reset()
        if owns_gateway:
            await exclusive.unload_model()
            await inner.aclose()
        await store.close()
        logger.info("%s stopped", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        description="Offline memory journaling with an on-device assistant",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    # Include routers
    app.include_router(users.router)
    app.include_router(notes.router)
    app.include_router(chat.router)
    app.include_router(games.router)
    app.include_router(reminiscence.router)
    app.include_router(model.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


configure_logging(get_settings())
app = create_app()
