"""Error taxonomy for the chat API and its JSON rendering."""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ChatApiError(Exception):
    """Base error carrying the HTTP status and the caller-visible message."""

    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ChatApiError):
    """The caller omitted a required field or sent a malformed body."""

    status_code = 400
    default_message = "Invalid request"


class NotFoundError(ChatApiError):
    """The referenced user does not exist."""

    status_code = 404
    default_message = "User not found"


class InternalError(ChatApiError):
    """Any upstream failure: database, chat directory or AI service."""

    status_code = 500


async def chat_api_error_handler(request: Request, exc: ChatApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatApiError, chat_api_error_handler)  # type: ignore[arg-type]
