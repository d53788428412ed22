import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from chat_api import create_app
from chat_api.dependencies import Services
from chat_api.directory import MemoryChatDirectory
from chat_api.llm import AIReplyClient
from chat_api.storage import ChatStore


@pytest.fixture
def store():
    """Fresh in-memory SQLite database per test."""
    s = ChatStore("sqlite://")
    s.create_tables()
    return s


@pytest.fixture
def directory():
    return MemoryChatDirectory()


@pytest.fixture
def ai():
    """AI client mock that always answers the same reply."""
    mock_ai = MagicMock(spec=AIReplyClient)
    mock_ai.provider = "mock"
    mock_ai.generate_reply.return_value = "Hello from the assistant"
    return mock_ai


@pytest.fixture
def services(store, directory, ai):
    return Services(store=store, directory=directory, ai=ai)


@pytest.fixture
def client(services):
    return TestClient(create_app(services))
