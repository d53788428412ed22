#!/usr/bin/env python3
"""
Simple server startup script
"""
import logging

import uvicorn

from chat_api.config import HOST, PORT, LOG_LEVEL

logger = logging.getLogger(__name__)


def main() -> None:
    logger.info(f"Server is running on port {PORT}")
    uvicorn.run(
        "main:app",
        host=HOST,
        port=PORT,
        log_level=LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
