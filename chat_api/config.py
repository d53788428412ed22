"""Configuration module for the chat API.

Handles all environment variables, constants, and global configuration.
Provides basic logging setup.
"""

import os
import logging
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Listener
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))

# Database
DATABASE_URL = os.getenv("DATABASE_URL")

# Chat directory (Stream Chat)
STREAM_API_KEY = os.getenv("STREAM_API_KEY")
STREAM_API_SECRET = os.getenv("STREAM_API_SECRET")
CHAT_DIRECTORY_BACKEND = os.getenv("CHAT_DIRECTORY_BACKEND", "stream").lower().strip()
CHAT_BOT_USER_ID = os.getenv("CHAT_BOT_USER_ID", "ai_bot")
CHAT_BOT_NAME = os.getenv("CHAT_BOT_NAME", "AI Bot")
CHAT_CHANNEL_TYPE = os.getenv("CHAT_CHANNEL_TYPE", "messaging")
CHAT_CHANNEL_NAME = os.getenv("CHAT_CHANNEL_NAME", "AI Chat")

# AI reply provider: "openai", "azure_openai" or "gemini"
AI_PROVIDER = os.getenv("AI_PROVIDER", "openai").lower().strip()

# OpenAI configuration
openai_api_key = os.getenv("OPENAI_API_KEY")
openai_model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Azure OpenAI configuration
azure_openai_api_key = os.getenv("AZURE_OPENAI_API_KEY")
azure_openai_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
azure_openai_deployment = os.getenv("AZURE_OPENAI_DEPLOYMENT")
azure_openai_api_version = os.getenv("AZURE_OPENAI_API_VERSION")

# Gemini configuration
gemini_api_key = os.getenv("GEMINI_API_KEY")
gemini_model = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")


def _optional_int(name: str) -> Optional[int]:
    """Read an optional positive integer, ignoring junk values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}', ignoring")
        return None
    return value if value > 0 else None


# Optional cap on completion length; provider default when unset
MAX_COMPLETION_TOKENS = _optional_int("MAX_COMPLETION_TOKENS")

# Debug flags
ENABLE_REQUEST_LOGGING = os.getenv("ENABLE_REQUEST_LOGGING", "false").lower() == "true"
