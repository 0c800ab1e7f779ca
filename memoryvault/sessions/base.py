"""
Shared plumbing for the session state machines.

Each machine owns an immutable state value. Transitions are pure functions
from the old state to the new one; the machine performs the async effects
(store reads, model calls) and applies the transition when the effect
completes, but only if the request that started it is still current.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from pydantic import BaseModel

from memoryvault.config import Settings, sanitize_error
from memoryvault.errors import (
    GatewayError,
    GatewayErrorReason,
    InsufficientData,
    MemoryVaultError,
    ProtocolError,
    SessionBusy,
    StoreError,
)
from memoryvault.services.gateway import InferenceGateway, ensure_model_loaded
from memoryvault.services.protocol import expect_payload

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)
T = TypeVar("T")
P = TypeVar("P", bound=BaseModel)


class RequestGuard:
    """
    Hands out a token per request; only the latest token is current.

    A completion checks its token before touching state, so a result that
    arrives after a reset (or after a newer request) is dropped.
    """

    def __init__(self) -> None:
        self._current = 0

    def issue(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current

    def invalidate(self) -> None:
        self._current += 1


def user_message(error: Exception, environment: str) -> str:
    """One human-readable sentence for a failed generation. Details only show in development."""
    if isinstance(error, (InsufficientData, SessionBusy)):
        return error.message
    if isinstance(error, ProtocolError):
        return "I couldn't make sense of the AI's answer this time. Please try again."
    if isinstance(error, GatewayError):
        if error.reason == GatewayErrorReason.MODEL_LOAD_FAILED:
            return "Could not load the AI model. Please try again."
        return "The AI model could not answer right now. Please try again."
    if isinstance(error, StoreError):
        return "Your memories could not be read right now. Please try again."
    return sanitize_error(
        error, environment, generic_message="An unexpected error occurred. Please try again."
    )


async def generate_payload(
    gateway: InferenceGateway,
    settings: Settings,
    prompt: str,
    schema: type[P],
) -> P:
    """
    Prompt the model and parse its reply into ``schema``.

    A malformed reply re-issues the same request up to
    ``settings.protocol_retry_attempts`` more times; gateway errors are not
    retried here.

    Raises:
        GatewayError: If the model cannot be loaded or generation fails
        ProtocolError: If every reply was malformed
    """
    await ensure_model_loaded(gateway, settings)
    attempts = 1 + max(0, settings.protocol_retry_attempts)
    for attempt in range(attempts):
        result = await gateway.generate_text(prompt)
        try:
            return expect_payload(result.text, schema)
        except ProtocolError:
            if attempt == attempts - 1:
                raise
            logger.warning(
                "Malformed %s reply (attempt %d/%d), asking again",
                schema.__name__, attempt + 1, attempts,
            )
    raise AssertionError("unreachable")


class SessionMachine(Generic[S]):
    """Holds the current state and applies async results only while they are current."""

    def __init__(self, initial: S, settings: Settings):
        self.settings = settings
        self._initial = initial
        self._state = initial
        self._guard = RequestGuard()

    @property
    def state(self) -> S:
        return self._state

    def reset(self) -> S:
        """Drop the current game/session. Outstanding generations are discarded."""
        self._guard.invalidate()
        self._state = self._initial
        return self._state

    async def _complete(
        self,
        token: int,
        work: Awaitable[T],
        on_success: Callable[[S, T], S],
        on_failure: Callable[[S, str], S],
    ) -> S:
        """
        Await ``work`` and apply the matching transition.

        Failures are recorded in the state and re-raised so callers can map
        them; stale results and stale failures are both discarded.
        """
        try:
            result = await work
        except Exception as e:
            if not self._guard.is_current(token):
                logger.info("%s: discarding failure of a stale request: %s", type(self).__name__, e)
                return self._state
            if not isinstance(e, MemoryVaultError):
                logger.exception("%s: unexpected failure", type(self).__name__)
            self._state = on_failure(self._state, user_message(e, self.settings.environment))
            raise
        if not self._guard.is_current(token):
            logger.info("%s: discarding result of a stale request", type(self).__name__)
            return self._state
        self._state = on_success(self._state, result)
        return self._state
