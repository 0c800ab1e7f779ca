"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncGenerator, Sequence
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient

from memoryvault.config import Settings
from memoryvault.errors import GatewayError, GatewayErrorReason
from memoryvault.main import create_app
from memoryvault.services.context import ContextSummarizer
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import GenerationResult, estimate_token_count
from memoryvault.services.media import MediaManager


class ScriptedGateway:
    """
    Inference gateway that replays scripted replies.

    Each entry of ``replies`` is returned (str) or raised (Exception) in turn.
    Setting ``gate`` to an unset ``asyncio.Event`` holds every generation until
    the event is set.
    """

    def __init__(self, replies: Sequence[str | Exception] = (), *, fail_load: bool = False):
        self.replies = list(replies)
        self.fail_load = fail_load
        self.loaded = False
        self.load_calls = 0
        self.prompts: list[str] = []
        self.images: list[list[str]] = []
        self.gate: asyncio.Event | None = None

    def script(self, *replies: str | Exception) -> None:
        self.replies.extend(replies)

    async def load_model(self, path: str, use_gpu: bool = True) -> None:
        self.load_calls += 1
        if self.fail_load:
            raise GatewayError("model file missing", GatewayErrorReason.MODEL_LOAD_FAILED)
        self.loaded = True

    async def unload_model(self) -> None:
        self.loaded = False

    def is_loaded(self) -> bool:
        return self.loaded

    async def generate_text(self, prompt: str) -> GenerationResult:
        if not self.loaded:
            raise GatewayError("Model is not loaded", GatewayErrorReason.MODEL_NOT_LOADED)
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if not self.replies:
            raise GatewayError("no scripted reply left", GatewayErrorReason.INFERENCE_FAILED)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return GenerationResult(
            text=reply, elapsed_ms=1.0, approx_token_count=estimate_token_count(reply)
        )

    async def generate_text_with_images(
        self, prompt: str, images: Sequence[str], max_images: int = 1
    ) -> GenerationResult:
        self.images.append(list(images)[:max_images])
        return await self.generate_text(prompt)


async def wait_for(predicate, attempts: int = 400) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition never became true")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path / "data", _env_file=None)


@pytest.fixture
async def store(settings) -> AsyncGenerator[EntityStore, None]:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    store = EntityStore(settings.database_url)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def media(settings) -> MediaManager:
    return MediaManager(settings.media_dir)


@pytest.fixture
def summarizer(store, settings) -> ContextSummarizer:
    return ContextSummarizer(store, settings)


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def make_note(store):
    """Factory creating notes with increasing timestamps (day 1, day 2, ...)."""
    created = 0

    async def _make(title: str | None = None, content: str = "A day to remember.", **kwargs):
        nonlocal created
        created += 1
        kwargs.setdefault("timestamp", datetime(2026, 1, created))
        return await store.create_note(title=title or f"Memory {created}", content=content, **kwargs)

    return _make


@pytest.fixture
def app(settings, gateway):
    return create_app(settings, gateway=gateway)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints, with the lifespan running."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
