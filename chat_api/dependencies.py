"""Process-scoped services and request body parsing for the handlers."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from .config import DATABASE_URL
from .directory import ChatDirectory, create_directory
from .errors import InternalError, ValidationError
from .llm import AIReplyClient, create_ai_client
from .storage import ChatStore

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@dataclass
class Services:
    """Client handles constructed once at startup and shared by all requests."""
    store: ChatStore
    directory: ChatDirectory
    ai: AIReplyClient


def build_services() -> Services:
    """Construct the database, chat directory and AI clients from configuration."""
    store = ChatStore(DATABASE_URL)
    if not store.is_healthy():
        raise RuntimeError("Database at DATABASE_URL is not reachable")
    store.create_tables()
    directory = create_directory()
    ai = create_ai_client()
    logger.info(f"Services ready: directory={directory.backend_type.value}, ai={ai.provider}")
    return Services(store=store, directory=directory, ai=ai)


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.error("Request received before services were initialized")
        raise InternalError()
    return services


async def read_body(request: Request) -> Dict[str, Any]:
    """Return the request body as a mapping, from JSON or form encoding."""
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith(_FORM_TYPES):
        try:
            form = await request.form()
        except (MultiPartException, StarletteHTTPException):
            raise ValidationError("Malformed form body")
        return {k: v for k, v in form.items() if isinstance(v, str)}

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        raise ValidationError("Request body must be JSON or URL-encoded")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parsed_body(model: Type[ModelT]) -> Callable[[Request], Awaitable[ModelT]]:
    """Dependency factory validating the body into ``model`` before the handler runs."""

    async def dependency(request: Request) -> ModelT:
        data = await read_body(request)
        try:
            return model.model_validate(data)
        except PydanticValidationError:
            raise ValidationError(getattr(model, "missing_message", "Invalid request"))

    return dependency
