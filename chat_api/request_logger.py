"""HTTP request logging for debugging."""

import logging
from fastapi import Request, Response

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """Best guess at the caller's address behind proxies."""
    h = request.headers
    return (
        h.get("x-forwarded-for", "").split(",")[0].strip() or
        h.get("x-real-ip") or
        (request.client.host if request.client else "unknown")
    )


def log_request(request: Request, response: Response, duration_ms: float) -> None:
    """Log one line per handled request."""
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"in {duration_ms:.1f}ms from {client_ip(request)}"
    )
