"""
Error taxonomy for the memory vault core.

Every error carries a machine-readable ``reason`` and a human message.
The HTTP layer maps these onto status codes (see ``memoryvault.api.errors``).
"""

from enum import Enum as PyEnum


class MemoryVaultError(Exception):
    """Base class for all domain errors."""

    reason: str = "error"

    def __init__(self, message: str, *, reason: str | None = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason


class StoreErrorReason(str, PyEnum):
    NOT_INITIALIZED = "not_initialized"
    CONSTRAINT_VIOLATION = "constraint_violation"


class StoreError(MemoryVaultError):
    """Entity store failure. Fatal to the operation, never to the process."""

    def __init__(self, message: str, reason: StoreErrorReason):
        super().__init__(message, reason=reason.value)


class MediaError(MemoryVaultError):
    """Copy/move/delete failure. Always degraded and logged, never surfaced to a save."""

    reason = "media_failed"


class GatewayErrorReason(str, PyEnum):
    MODEL_NOT_LOADED = "model_not_loaded"
    MODEL_LOAD_FAILED = "model_load_failed"
    INFERENCE_FAILED = "inference_failed"


class GatewayError(MemoryVaultError):
    """Failure reported by the inference gateway."""

    def __init__(self, message: str, reason: GatewayErrorReason):
        super().__init__(message, reason=reason.value)


class ProtocolError(MemoryVaultError):
    """The model returned text that does not match the requested shape."""

    MALFORMED_RESPONSE = "malformed_response"

    def __init__(self, message: str, *, raw: str | None = None):
        super().__init__(message, reason=self.MALFORMED_RESPONSE)
        self.raw = raw


class InsufficientData(MemoryVaultError):
    """A domain precondition is not met, e.g. too few notes for a game."""

    reason = "insufficient_data"


class SessionBusy(MemoryVaultError):
    """A state machine refused an action in its current state."""

    reason = "session_busy"
