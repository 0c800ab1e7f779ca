"""
Inference gateway: the contract for the on-device model plus shipped adapters.

The model session is exclusive, so ``ExclusiveGateway`` makes sure at most one
generation is in flight system-wide. ``OllamaGateway`` talks to a local Ollama
server; any other runtime only has to implement ``InferenceGateway``.
"""

import asyncio
import base64
import logging
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel

from memoryvault.config import Settings
from memoryvault.errors import GatewayError, GatewayErrorReason

logger = logging.getLogger(__name__)


def estimate_token_count(text: str) -> int:
    """Approximate token count (about four characters per token). Not exact."""
    return max(1, len(text) // 4)


class GenerationResult(BaseModel):
    """Raw model output with timing and an approximate token count."""

    text: str
    elapsed_ms: float
    approx_token_count: int


@runtime_checkable
class InferenceGateway(Protocol):
    """
    Opaque text/image generation service.

    Failures are raised as GatewayError with reason MODEL_NOT_LOADED,
    MODEL_LOAD_FAILED or INFERENCE_FAILED. Timeouts are the gateway's job:
    callers only ever see success or a GatewayError.
    """

    async def load_model(self, path: str, use_gpu: bool = True) -> None: ...

    async def unload_model(self) -> None: ...

    def is_loaded(self) -> bool: ...

    async def generate_text(self, prompt: str) -> GenerationResult: ...

    async def generate_text_with_images(
        self, prompt: str, images: Sequence[str], max_images: int = 1
    ) -> GenerationResult: ...


class ExclusiveGateway:
    """
    Serializes access to a gateway.

    Generation calls queue on one lock and are never issued concurrently.
    Loading and unloading take the same lock so the model cannot disappear
    under a running generation.
    """

    def __init__(self, inner: InferenceGateway):
        self.inner = inner
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def is_loaded(self) -> bool:
        return self.inner.is_loaded()

    async def load_model(self, path: str, use_gpu: bool = True) -> None:
        async with self._lock:
            await self.inner.load_model(path, use_gpu)

    async def ensure_loaded(self, path: str, use_gpu: bool = True) -> bool:
        """
        Load the model unless it already is, as one step under the lock.

        Returns:
            True if this call loaded the model
        """
        async with self._lock:
            if self.inner.is_loaded():
                return False
            await self.inner.load_model(path, use_gpu)
            return True

    async def unload_model(self) -> None:
        async with self._lock:
            await self.inner.unload_model()

    async def generate_text(self, prompt: str) -> GenerationResult:
        async with self._lock:
            return await self.inner.generate_text(prompt)

    async def generate_text_with_images(
        self, prompt: str, images: Sequence[str], max_images: int = 1
    ) -> GenerationResult:
        async with self._lock:
            return await self.inner.generate_text_with_images(prompt, images, max_images)


async def ensure_model_loaded(gateway: InferenceGateway, settings: Settings) -> None:
    """Load the configured model unless it is already loaded."""
    if gateway.is_loaded():
        return
    logger.info("Loading model %s (gpu=%s)", settings.model_path, settings.model_use_gpu)
    if isinstance(gateway, ExclusiveGateway):
        await gateway.ensure_loaded(settings.model_path, settings.model_use_gpu)
    else:
        await gateway.load_model(settings.model_path, settings.model_use_gpu)


class OllamaGateway:
    """
    Gateway backed by a local Ollama server.

    ``path`` in ``load_model`` is the Ollama model name. Loading sends an empty
    generate request with ``keep_alive`` so the model stays resident; unloading
    sends ``keep_alive=0``. Images are read from their permanent paths and sent
    base64-encoded.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        *,
        timeout: float = 300.0,
        keep_alive: str = "30m",
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.keep_alive = keep_alive
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
        )
        self.model: str | None = None
        self._options: dict = {}

    def is_loaded(self) -> bool:
        return self.model is not None

    async def load_model(self, path: str, use_gpu: bool = True) -> None:
        options = {} if use_gpu else {"num_gpu": 0}
        try:
            response = await self.client.post(
                "/api/generate",
                json={"model": path, "keep_alive": self.keep_alive, "options": options},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise GatewayError(
                f"Failed to load model {path}: {e}", GatewayErrorReason.MODEL_LOAD_FAILED
            ) from e
        self.model = path
        self._options = options
        logger.info("Model %s loaded via %s", path, self.base_url)

    async def unload_model(self) -> None:
        if self.model is None:
            return
        try:
            response = await self.client.post(
                "/api/generate", json={"model": self.model, "keep_alive": 0}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            # The local handle is dropped regardless; the server evicts idle models itself
            logger.warning("Unload request for %s failed: %s", self.model, e)
        self.model = None

    async def generate_text(self, prompt: str) -> GenerationResult:
        return await self._generate({"prompt": prompt})

    async def generate_text_with_images(
        self, prompt: str, images: Sequence[str], max_images: int = 1
    ) -> GenerationResult:
        encoded = []
        for path in list(images)[:max_images]:
            try:
                data = await asyncio.to_thread(Path(path.removeprefix("file://")).read_bytes)
            except OSError as e:
                # Matches a runtime that skips undecodable images
                logger.warning("Skipping unreadable image %s: %s", path, e)
                continue
            encoded.append(base64.b64encode(data).decode("ascii"))
        return await self._generate({"prompt": prompt, "images": encoded})

    async def _generate(self, body: dict) -> GenerationResult:
        if self.model is None:
            raise GatewayError("Model is not loaded", GatewayErrorReason.MODEL_NOT_LOADED)

        start = time.perf_counter()
        try:
            response = await self.client.post(
                "/api/generate",
                json={
                    "model": self.model,
                    "stream": False,
                    "keep_alive": self.keep_alive,
                    "options": self._options,
                    **body,
                },
            )
            response.raise_for_status()
            text = response.json()["response"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise GatewayError(f"Inference failed: {e}", GatewayErrorReason.INFERENCE_FAILED) from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        return GenerationResult(
            text=text,
            elapsed_ms=elapsed_ms,
            approx_token_count=estimate_token_count(text),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
