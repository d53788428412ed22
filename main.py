"""Entry point for the chat API backend."""
from chat_api import app, create_app


__all__ = [
    "app",
    "create_app",
]
