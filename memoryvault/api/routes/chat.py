"""Chat routes."""

import logging

from fastapi import APIRouter

from memoryvault.api.deps import Chat, Media
from memoryvault.errors import MediaError, SessionBusy
from memoryvault.schemas.chat import ChatMessageRequest
from memoryvault.sessions.chat import BUSY_STATUSES, ChatState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("", response_model=ChatState)
async def get_chat(chat: Chat) -> ChatState:
    """Open (or refresh) the conversation and return it with the welcome line."""
    return await chat.open()


@router.post("/messages", response_model=ChatState)
async def send_message(data: ChatMessageRequest, chat: Chat, media: Media) -> ChatState:
    """
    Send a message and wait for the reply.

    Attached images are copied into permanent storage before they are stored
    on the message. A model failure still returns 200: the reply is then an
    ``Error:`` message and ``error`` is set.
    """
    if chat.state.session_id is None:
        await chat.open()
    if chat.state.status in BUSY_STATUSES:
        raise SessionBusy("Please wait for the current reply before sending another message.")

    image_paths = []
    for uri in data.image_uris:
        try:
            image_paths.append(await media.promote_image(uri))
        except MediaError as e:
            logger.warning("Dropping chat image: %s", e)
    return await chat.send(data.message, image_paths)


@router.delete("", response_model=ChatState)
async def cancel_reply(chat: Chat) -> ChatState:
    """Discard a reply that is still being generated."""
    return chat.reset()
