"""
Chat: a conversation with the assistant grounded in the user's notes.

The user message is stored before the model is asked anything, so it survives
a failed generation. Model failures never raise out of ``send``; they show up
as an assistant message starting with ``Error:`` and in ``state.error``.
"""

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum as PyEnum

from pydantic import computed_field

from memoryvault.config import Settings
from memoryvault.db.models import MessageType
from memoryvault.errors import GatewayError, GatewayErrorReason, InsufficientData, SessionBusy
from memoryvault.schemas.base import FrozenSchema
from memoryvault.schemas.chat import MessageRead
from memoryvault.services.context import ContextSummarizer
from memoryvault.services.entity_store import EntityStore
from memoryvault.services.gateway import GenerationResult, InferenceGateway, ensure_model_loaded
from memoryvault.services.protocol import DEFAULT_IMAGE_PROMPT, build_chat_prompt, extract_note_references
from memoryvault.sessions.base import SessionMachine, user_message

logger = logging.getLogger(__name__)

IMAGE_ONLY_CONTENT = "📸 Sent images"


def welcome_message(user_name: str) -> str:
    return (
        f"Hello {user_name}! I'm here to help you explore your memories and experiences. "
        "What would you like to talk about today?"
    )


class ChatStatus(str, PyEnum):
    IDLE = "idle"
    MODEL_LOADING = "model_loading"
    AWAITING_RESPONSE = "awaiting_response"
    READY = "ready"
    ERRORED = "errored"


BUSY_STATUSES = frozenset({ChatStatus.MODEL_LOADING, ChatStatus.AWAITING_RESPONSE})


class ChatState(FrozenSchema):
    """The open conversation. ``messages`` is the persisted history, oldest first."""

    status: ChatStatus = ChatStatus.IDLE
    user_name: str | None = None
    session_id: int | None = None
    messages: tuple[MessageRead, ...] = ()
    error: str | None = None

    @computed_field
    @property
    def welcome(self) -> str | None:
        return welcome_message(self.user_name) if self.user_name else None


# =============================================================================
# TRANSITIONS
# =============================================================================


def opened(
    state: ChatState,
    user_name: str,
    session_id: int,
    messages: Sequence[MessageRead],
    model_loaded: bool,
) -> ChatState:
    return ChatState(
        status=ChatStatus.READY if model_loaded else ChatStatus.IDLE,
        user_name=user_name,
        session_id=session_id,
        messages=tuple(messages),
    )


def start_send(state: ChatState, model_loaded: bool) -> ChatState:
    if state.session_id is None:
        raise SessionBusy("The chat is not open yet.")
    if state.status in BUSY_STATUSES:
        raise SessionBusy("Please wait for the current reply before sending another message.")
    status = ChatStatus.AWAITING_RESPONSE if model_loaded else ChatStatus.MODEL_LOADING
    return state.model_copy(update={"status": status, "error": None})


def message_appended(state: ChatState, message: MessageRead) -> ChatState:
    return state.model_copy(update={"messages": state.messages + (message,)})


def model_ready(state: ChatState) -> ChatState:
    return state.model_copy(update={"status": ChatStatus.AWAITING_RESPONSE})


def reply_received(state: ChatState, message: MessageRead) -> ChatState:
    return state.model_copy(
        update={"status": ChatStatus.READY, "messages": state.messages + (message,), "error": None}
    )


def reply_failed(state: ChatState, message: MessageRead | None, error: str, status: ChatStatus) -> ChatState:
    messages = state.messages + (message,) if message is not None else state.messages
    return state.model_copy(update={"status": status, "messages": messages, "error": error})


# =============================================================================
# MACHINE
# =============================================================================


class ChatMachine(SessionMachine[ChatState]):
    """Drives the single chat conversation of the installation's user."""

    def __init__(
        self,
        store: EntityStore,
        summarizer: ContextSummarizer,
        gateway: InferenceGateway,
        settings: Settings,
    ):
        super().__init__(ChatState(), settings)
        self.store = store
        self.summarizer = summarizer
        self.gateway = gateway
        self._opening = asyncio.Lock()

    async def open(self) -> ChatState:
        """
        Resolve the user's active session and load its history.

        Re-opening an open chat only refreshes it when nothing is in flight.

        Raises:
            InsufficientData: If onboarding has not created a user yet
        """
        async with self._opening:
            if self._state.session_id is not None and self._state.status in BUSY_STATUSES:
                return self._state
            user = await self.store.get_user()
            if user is None:
                raise InsufficientData("Create your profile before starting a chat.")
            session = await self.store.get_or_create_chat_session(user.id)
            messages = await self.store.get_messages_for_session(session.id)
            self._guard.invalidate()
            self._state = opened(self._state, user.name, session.id, messages, self.gateway.is_loaded())
            return self._state

    def reset(self) -> ChatState:
        """Discard any reply still in flight. The stored conversation is kept."""
        self._guard.invalidate()
        if self._state.session_id is None:
            return self._state
        status = ChatStatus.READY if self.gateway.is_loaded() else ChatStatus.IDLE
        self._state = self._state.model_copy(update={"status": status, "error": None})
        return self._state

    async def send(self, text: str, image_paths: Sequence[str] = ()) -> ChatState:
        """
        Send a message (text, images or both) and wait for the reply.

        Raises:
            SessionBusy: If a reply is still pending or the chat is not open
            InsufficientData: If there is neither text nor an image
        """
        text = text.strip()
        image_paths = list(image_paths)
        if not text and not image_paths:
            raise InsufficientData("Type a message or attach a photo first.")

        # Checked and set before the first await, so a second send is refused
        self._state = start_send(self._state, self.gateway.is_loaded())
        token = self._guard.issue()
        session_id = self._state.session_id
        window = self.settings.chat_history_window
        history = self._state.messages[-window:] if window > 0 else ()

        try:
            sent = await self.store.save_message(
                session_id, MessageType.USER, text or IMAGE_ONLY_CONTENT, image_paths=image_paths
            )
        except Exception as e:
            self._fail(token, None, e, self._stable_status())
            raise
        if not self._guard.is_current(token):
            return self._state
        self._state = message_appended(self._state, sent)

        try:
            await ensure_model_loaded(self.gateway, self.settings)
        except GatewayError as e:
            logger.warning("Chat could not load the model: %s", e)
            return await self._reply_with_error(token, session_id, e, ChatStatus.ERRORED)
        if not self._guard.is_current(token):
            return self._state
        self._state = model_ready(self._state)

        try:
            notes = await self.store.list_notes()
            prompt = build_chat_prompt(
                self._state.user_name or "there",
                self.summarizer.summarize(notes),
                history,
                text or DEFAULT_IMAGE_PROMPT,
                has_images=bool(image_paths),
            )
            result = await self._generate(prompt, image_paths)
        except GatewayError as e:
            logger.warning("Chat generation failed: %s", e)
            status = ChatStatus.ERRORED if e.reason == GatewayErrorReason.MODEL_LOAD_FAILED else ChatStatus.READY
            return await self._reply_with_error(token, session_id, e, status)
        except Exception as e:
            self._fail(token, None, e, self._stable_status())
            raise
        if not self._guard.is_current(token):
            logger.info("Discarding a chat reply that arrived after a reset")
            return self._state

        reply = result.text.strip()
        logger.info(
            "Chat reply in %.0f ms (~%d tokens)", result.elapsed_ms, result.approx_token_count
        )
        try:
            answer = await self.store.save_message(
                session_id,
                MessageType.ASSISTANT,
                reply,
                note_ids=extract_note_references(reply, (n.id for n in notes)),
            )
        except Exception as e:
            self._fail(token, None, e, ChatStatus.READY)
            raise
        if self._guard.is_current(token):
            self._state = reply_received(self._state, answer)
        return self._state

    async def _generate(self, prompt: str, image_paths: Sequence[str]) -> GenerationResult:
        if image_paths:
            return await self.gateway.generate_text_with_images(
                prompt, image_paths, max_images=self.settings.model_max_images
            )
        return await self.gateway.generate_text(prompt)

    async def _reply_with_error(
        self, token: int, session_id: int, error: GatewayError, status: ChatStatus
    ) -> ChatState:
        """Record a failed generation as an assistant message and settle in ``status``."""
        if not self._guard.is_current(token):
            return self._state
        text = user_message(error, self.settings.environment)
        try:
            saved = await self.store.save_message(session_id, MessageType.ASSISTANT, f"Error: {text}")
        except Exception:
            self._fail(token, None, error, status)
            raise
        self._fail(token, saved, error, status)
        return self._state

    def _fail(self, token: int, message: MessageRead | None, error: Exception, status: ChatStatus) -> None:
        if self._guard.is_current(token):
            text = user_message(error, self.settings.environment)
            self._state = reply_failed(self._state, message, text, status)

    def _stable_status(self) -> ChatStatus:
        return ChatStatus.READY if self.gateway.is_loaded() else ChatStatus.IDLE
