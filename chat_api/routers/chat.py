"""Chat and message history endpoints."""

import logging
from fastapi import APIRouter, Depends

from ..dependencies import Services, get_services, parsed_body
from ..errors import ChatApiError, InternalError, NotFoundError
from ..schemas import (
    ChatRequest, ChatResponse, GetMessagesRequest, MessagesResponse, ChatMessage,
)
from ..utils import channel_id_for_user

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
def chat(
    req: ChatRequest = Depends(parsed_body(ChatRequest)),
    services: Services = Depends(get_services),
) -> ChatResponse:
    """Generate an AI reply, persist it, then mirror it into the user's channel.

    Steps run strictly in order and the first failure aborts the request.
    Earlier side effects are kept: a reply already saved to the database
    stays there even when the mirror into the chat directory fails.
    """
    user_id = req.userId
    step = "user lookup"
    try:
        if services.store.get_user(user_id) is None:
            raise NotFoundError("User not found")
        if services.directory.get_user(user_id) is None:
            raise NotFoundError("User not found in chat directory")

        step = "AI reply"
        reply = services.ai.generate_reply(req.message)

        step = "database insert"
        services.store.add_chat(user_id, req.message, reply)

        step = "channel create"
        channel_id = channel_id_for_user(user_id)
        services.directory.ensure_channel(channel_id, user_id)

        step = "message send"
        services.directory.send_bot_message(channel_id, reply)
    except ChatApiError:
        raise
    except Exception:
        logger.exception(f"Chat for {user_id} failed at {step}")
        raise InternalError()

    return ChatResponse(reply=reply)


@router.post("/get-messages", response_model=MessagesResponse)
def get_messages(
    req: GetMessagesRequest = Depends(parsed_body(GetMessagesRequest)),
    services: Services = Depends(get_services),
) -> MessagesResponse:
    """Return every stored chat of a user, oldest first."""
    try:
        if services.store.get_user(req.userId) is None:
            raise NotFoundError("User not found")
        chats = services.store.get_chats(req.userId)
    except ChatApiError:
        raise
    except Exception:
        logger.exception(f"Error while loading messages for {req.userId}")
        raise InternalError()

    return MessagesResponse(messages=[ChatMessage(**c.to_dict()) for c in chats])
