import time
import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import ENABLE_REQUEST_LOGGING
from .dependencies import Services, build_services
from .errors import register_error_handlers
from .request_logger import log_request
from .routers import chat, users

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the application.

    When ``services`` is given it is used as-is; otherwise the clients are
    constructed from the environment on startup.
    """
    app = FastAPI(title="Chat API", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.services = services

    # Open to all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"]
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests when request logging is enabled."""
        started = time.perf_counter()
        response = await call_next(request)
        if ENABLE_REQUEST_LOGGING:
            try:
                log_request(request, response, (time.perf_counter() - started) * 1000)
            except Exception as e:
                logger.error(f"Failed to log request {request.url.path}: {e}")
        return response

    register_error_handlers(app)
    app.include_router(users.router)
    app.include_router(chat.router)

    @app.on_event("startup")
    async def _init_services() -> None:
        """Construct the shared clients once per process."""
        if app.state.services is None:
            app.state.services = build_services()

    return app


app = create_app()
