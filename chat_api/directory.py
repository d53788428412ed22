"""
Chat directory clients - pluggable implementations of the chat mirror.

The chat directory owns user identities, channels and message delivery for
display. Nothing is ever read back from it except user existence checks.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from stream_chat import StreamChat

from .config import (
    STREAM_API_KEY, STREAM_API_SECRET, CHAT_DIRECTORY_BACKEND,
    CHAT_BOT_USER_ID, CHAT_BOT_NAME, CHAT_CHANNEL_TYPE, CHAT_CHANNEL_NAME,
)

logger = logging.getLogger(__name__)


class DirectoryBackend(Enum):
    """Available chat directory backend types."""
    MEMORY = "memory"
    STREAM = "stream"


class ChatDirectory(ABC):
    """Abstract base class for chat directory implementations."""

    def __init__(self, bot_user_id: str = CHAT_BOT_USER_ID, bot_name: str = CHAT_BOT_NAME,
                 channel_type: str = CHAT_CHANNEL_TYPE, channel_name: str = CHAT_CHANNEL_NAME):
        self.bot_user_id = bot_user_id
        self.bot_name = bot_name
        self.channel_type = channel_type
        self.channel_name = channel_name
        self._bot_ready = False

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the directory record for ``user_id``, or None."""
        pass

    @abstractmethod
    def upsert_user(self, user_id: str, name: str, email: Optional[str] = None,
                    role: str = "user") -> Dict[str, Any]:
        """Create or replace a directory user."""
        pass

    @abstractmethod
    def _create_channel(self, channel_id: str, member_id: str) -> None:
        """Create the channel, tolerating one that already exists."""
        pass

    @abstractmethod
    def send_message(self, channel_id: str, text: str, user_id: str) -> Dict[str, Any]:
        """Append a message authored by ``user_id`` to the channel."""
        pass

    @property
    @abstractmethod
    def backend_type(self) -> DirectoryBackend:
        """Return the directory backend type."""
        pass

    def ensure_bot_user(self) -> None:
        """Upsert the bot identity once per process."""
        if self._bot_ready:
            return
        self.upsert_user(self.bot_user_id, self.bot_name)
        self._bot_ready = True

    def ensure_channel(self, channel_id: str, member_id: str) -> None:
        """Create the mirror channel if absent; an existing channel is fine."""
        self.ensure_bot_user()
        self._create_channel(channel_id, member_id)

    def send_bot_message(self, channel_id: str, text: str) -> Dict[str, Any]:
        return self.send_message(channel_id, text, self.bot_user_id)


class MemoryChatDirectory(ChatDirectory):
    """In-memory chat directory for local development and tests."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.users: Dict[str, Dict[str, Any]] = {}
        self.channels: Dict[str, Dict[str, Any]] = {}
        logger.info("Initialized in-memory chat directory")

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        user = self.users.get(user_id)
        return dict(user) if user else None

    def upsert_user(self, user_id: str, name: str, email: Optional[str] = None,
                    role: str = "user") -> Dict[str, Any]:
        user = {"id": user_id, "name": name, "role": role}
        if email:
            user["email"] = email
        self.users[user_id] = user
        return dict(user)

    def _create_channel(self, channel_id: str, member_id: str) -> None:
        if channel_id in self.channels:
            return
        self.channels[channel_id] = {
            "type": self.channel_type,
            "name": self.channel_name,
            "created_by": self.bot_user_id,
            "members": [member_id, self.bot_user_id],
            "messages": [],
        }

    def send_message(self, channel_id: str, text: str, user_id: str) -> Dict[str, Any]:
        channel = self.channels.get(channel_id)
        if channel is None:
            raise KeyError(f"Channel {channel_id} does not exist")
        message = {"text": text, "user_id": user_id}
        channel["messages"].append(message)
        return dict(message)

    def messages(self, channel_id: str) -> List[Dict[str, Any]]:
        channel = self.channels.get(channel_id)
        return list(channel["messages"]) if channel else []

    @property
    def backend_type(self) -> DirectoryBackend:
        return DirectoryBackend.MEMORY


class StreamChatDirectory(ChatDirectory):
    """Stream Chat implementation using the server-side SDK."""

    def __init__(self, api_key: Optional[str] = None, api_secret: Optional[str] = None,
                 client: Optional[StreamChat] = None, **kwargs):
        super().__init__(**kwargs)
        if client is not None:
            self._client = client
        else:
            self._client = StreamChat(api_key=api_key, api_secret=api_secret)
        logger.info("Initialized Stream chat directory")

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = self._client.query_users({"id": {"$eq": user_id}})
        users = response.get("users") or []
        return users[0] if users else None

    def upsert_user(self, user_id: str, name: str, email: Optional[str] = None,
                    role: str = "user") -> Dict[str, Any]:
        user = {"id": user_id, "name": name, "role": role}
        if email:
            user["email"] = email
        self._client.upsert_user(user)
        logger.info(f"Upserted chat directory user {user_id}")
        return user

    def _create_channel(self, channel_id: str, member_id: str) -> None:
        channel = self._client.channel(
            self.channel_type,
            channel_id,
            {"name": self.channel_name, "members": [member_id, self.bot_user_id]},
        )
        # get-or-create: an existing channel is returned unchanged
        channel.create(self.bot_user_id)

    def send_message(self, channel_id: str, text: str, user_id: str) -> Dict[str, Any]:
        channel = self._client.channel(self.channel_type, channel_id)
        response = channel.send_message({"text": text}, user_id)
        return response.get("message") or {}

    @property
    def backend_type(self) -> DirectoryBackend:
        return DirectoryBackend.STREAM


def create_directory(backend_type: Optional[str] = None) -> ChatDirectory:
    """Create the configured chat directory.

    Raises RuntimeError when the Stream backend has no credentials.
    """
    backend_type = (backend_type or CHAT_DIRECTORY_BACKEND).lower()

    if backend_type == "stream":
        if not (STREAM_API_KEY and STREAM_API_SECRET):
            raise RuntimeError("STREAM_API_KEY and STREAM_API_SECRET must be set")
        return StreamChatDirectory(STREAM_API_KEY, STREAM_API_SECRET)

    if backend_type == "memory":
        return MemoryChatDirectory()

    logger.warning(f"Unknown chat directory backend '{backend_type}', falling back to memory")
    return MemoryChatDirectory()
