import pytest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from chat_api import create_app
from chat_api.dependencies import Services, build_services
from chat_api.models import Chat, User


def _count(store, model, user_id):
    with store._session() as db:
        return db.scalar(select(func.count()).select_from(model).where(model.user_id == user_id))


def _register(client, name="Ann", email="ann@x.com"):
    return client.post("/register-user", json={"name": name, "email": email})


class TestRegisterUser:

    def test_register_derives_user_id(self, client, store, directory):
        response = _register(client)
        assert response.status_code == 200
        assert response.json() == {"userId": "ann_x_com", "name": "Ann", "email": "ann@x.com"}

        assert store.get_user("ann_x_com").email == "ann@x.com"
        assert directory.get_user("ann_x_com")["name"] == "Ann"

    def test_register_is_idempotent(self, client, store):
        first = _register(client)
        second = _register(client)
        assert first.json()["userId"] == second.json()["userId"]
        assert _count(store, User, "ann_x_com") == 1

    def test_register_keeps_existing_row(self, client, store):
        _register(client, name="Ann")
        _register(client, name="Annie")
        assert store.get_user("ann_x_com").name == "Ann"

    def test_register_accepts_urlencoded_body(self, client, store):
        response = client.post("/register-user", data={"name": "Bob", "email": "bob@y.org"})
        assert response.status_code == 200
        assert response.json()["userId"] == "bob_y_org"
        assert store.get_user("bob_y_org") is not None

    def test_register_missing_email(self, client, store, directory):
        response = client.post("/register-user", json={"name": "Ann"})
        assert response.status_code == 400
        assert response.json() == {"error": "Name and email are required"}
        assert directory.users == {}

    def test_register_empty_name(self, client):
        response = client.post("/register-user", json={"name": "", "email": "ann@x.com"})
        assert response.status_code == 400

    def test_register_directory_failure_is_internal_error(self, client, store, directory):
        with patch.object(directory, "upsert_user", side_effect=Exception("directory down")):
            response = _register(client)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        assert store.get_user("ann_x_com") is None

    def test_register_database_failure_is_internal_error(self, client, store):
        with patch.object(store, "create_user", side_effect=Exception("db down")):
            response = _register(client)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}


class TestChat:

    def test_chat_success(self, client, store, directory, ai):
        _register(client)
        response = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})

        assert response.status_code == 200
        assert response.json() == {"reply": "Hello from the assistant"}
        ai.generate_reply.assert_called_once_with("hello")

        chats = store.get_chats("ann_x_com")
        assert len(chats) == 1
        assert chats[0].message == "hello"
        assert chats[0].reply == "Hello from the assistant"

        mirrored = directory.messages("chat-ann_x_com")
        assert mirrored == [{"text": "Hello from the assistant", "user_id": "ai_bot"}]
        assert directory.get_user("ai_bot") is not None

    def test_chat_reuses_existing_channel(self, client, store, directory, ai):
        _register(client)
        ai.generate_reply.side_effect = ["first", "second"]
        client.post("/chat", json={"userId": "ann_x_com", "message": "one"})
        response = client.post("/chat", json={"userId": "ann_x_com", "message": "two"})

        assert response.status_code == 200
        assert [m["text"] for m in directory.messages("chat-ann_x_com")] == ["first", "second"]
        assert _count(store, Chat, "ann_x_com") == 2

    def test_chat_unknown_user(self, client, store, ai):
        response = client.post("/chat", json={"userId": "ghost", "message": "hello"})
        assert response.status_code == 404
        assert response.json() == {"error": "User not found"}
        ai.generate_reply.assert_not_called()
        assert _count(store, Chat, "ghost") == 0

    def test_chat_user_missing_from_directory(self, client, store, ai):
        store.create_user("ann_x_com", "Ann", "ann@x.com")
        response = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})
        assert response.status_code == 404
        ai.generate_reply.assert_not_called()

    def test_chat_missing_message(self, client, ai):
        response = client.post("/chat", json={"userId": "ann_x_com"})
        assert response.status_code == 400
        assert response.json() == {"error": "User ID and message are required"}
        ai.generate_reply.assert_not_called()

    def test_chat_ai_failure_writes_nothing(self, client, store, directory, ai):
        _register(client)
        ai.generate_reply.side_effect = Exception("model overloaded")
        response = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        assert store.get_chats("ann_x_com") == []
        assert directory.messages("chat-ann_x_com") == []

    def test_chat_mirror_failure_keeps_database_row(self, client, store, directory):
        _register(client)
        with patch.object(directory, "send_message", side_effect=Exception("stream down")):
            response = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})

        assert response.status_code == 500
        chats = store.get_chats("ann_x_com")
        assert len(chats) == 1
        assert chats[0].reply == "Hello from the assistant"

    def test_chat_channel_failure_keeps_database_row(self, client, store, directory):
        _register(client)
        with patch.object(directory, "ensure_channel", side_effect=Exception("stream down")):
            response = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})

        assert response.status_code == 500
        assert _count(store, Chat, "ann_x_com") == 1


class TestGetMessages:

    def test_no_chats_returns_empty_list(self, client):
        _register(client)
        response = client.post("/get-messages", json={"userId": "ann_x_com"})
        assert response.status_code == 200
        assert response.json() == {"messages": []}

    def test_unknown_user(self, client):
        response = client.post("/get-messages", json={"userId": "ghost"})
        assert response.status_code == 404

    def test_missing_user_id(self, client):
        response = client.post("/get-messages", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}

    def test_messages_in_creation_order(self, client, ai):
        _register(client)
        ai.generate_reply.side_effect = ["r1", "r2", "r3"]
        for text in ("m1", "m2", "m3"):
            client.post("/chat", json={"userId": "ann_x_com", "message": text})

        messages = client.post("/get-messages", json={"userId": "ann_x_com"}).json()["messages"]
        assert [(m["message"], m["reply"]) for m in messages] == [("m1", "r1"), ("m2", "r2"), ("m3", "r3")]
        assert all(m["userId"] == "ann_x_com" for m in messages)
        assert all(m["createdAt"] for m in messages)

    def test_only_own_messages(self, client, store):
        _register(client)
        _register(client, name="Bob", email="bob@y.org")
        client.post("/chat", json={"userId": "bob_y_org", "message": "hi"})

        response = client.post("/get-messages", json={"userId": "ann_x_com"})
        assert response.json() == {"messages": []}


def test_example_scenario(client):
    """Register, chat once, read the history back."""
    registered = client.post("/register-user", json={"name": "Ann", "email": "ann@x.com"})
    assert registered.json()["userId"] == "ann_x_com"

    chatted = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})
    assert chatted.status_code == 200
    assert chatted.json()["reply"]

    history = client.post("/get-messages", json={"userId": "ann_x_com"})
    messages = history.json()["messages"]
    assert len(messages) == 1
    assert messages[0]["message"] == "hello"


def test_malformed_json_body(client):
    response = client.post("/chat", content="{not json", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert "error" in response.json()


def test_json_array_body_rejected(client):
    response = client.post("/get-messages", json=["ann_x_com"])
    assert response.status_code == 400


def test_validation_happens_before_any_upstream_call():
    store = MagicMock()
    directory = MagicMock()
    ai = MagicMock()
    client = TestClient(create_app(Services(store=store, directory=directory, ai=ai)))

    assert client.post("/register-user", json={}).status_code == 400
    assert client.post("/chat", json={"message": "hi"}).status_code == 400
    assert client.post("/get-messages", json={}).status_code == 400

    assert store.mock_calls == []
    assert directory.mock_calls == []
    assert ai.mock_calls == []


def test_cors_open_to_all_origins(client):
    response = client.options(
        "/chat",
        headers={"Origin": "https://example.org", "Access-Control-Request-Method": "POST"},
    )
    assert response.headers.get("access-control-allow-origin") in ("*", "https://example.org")


def test_request_logging(client, caplog):
    with patch("chat_api.ENABLE_REQUEST_LOGGING", True):
        with caplog.at_level("INFO", logger="chat_api.request_logger"):
            client.post("/get-messages", json={"userId": "ghost"})
    assert any("POST /get-messages -> 404" in r.getMessage() for r in caplog.records)


def test_services_built_on_startup(services):
    app = create_app()
    with patch("chat_api.build_services", return_value=services) as mock_build:
        with TestClient(app) as client:
            response = client.post("/get-messages", json={"userId": "ghost"})
    mock_build.assert_called_once()
    assert response.status_code == 404


class TestUpstreamFailures:

    def test_get_messages_history_failure(self, client, store):
        _register(client)
        with patch.object(store, "get_chats", side_effect=Exception("db down")):
            response = client.post("/get-messages", json={"userId": "ann_x_com"})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}

    def test_get_messages_user_lookup_failure(self, client, store):
        with patch.object(store, "get_user", side_effect=Exception("db down")):
            response = client.post("/get-messages", json={"userId": "ann_x_com"})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}

    def test_chat_user_lookup_failure(self, client, store, ai):
        with patch.object(store, "get_user", side_effect=Exception("db down")):
            response = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        ai.generate_reply.assert_not_called()

    def test_chat_directory_lookup_failure(self, client, store, directory, ai):
        _register(client)
        with patch.object(directory, "get_user", side_effect=Exception("stream down")):
            response = client.post("/chat", json={"userId": "ann_x_com", "message": "hello"})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        ai.generate_reply.assert_not_called()
        assert store.get_chats("ann_x_com") == []


class TestMalformedBodies:

    def test_multipart_without_boundary(self, client, directory):
        response = client.post(
            "/register-user",
            content=b"name=Ann",
            headers={"content-type": "multipart/form-data"},
        )
        assert response.status_code == 400
        assert "error" in response.json()
        assert directory.users == {}

    def test_deeply_nested_json(self, client, ai):
        body = "[" * 100000 + "]" * 100000
        response = client.post("/chat", content=body, headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert "error" in response.json()
        ai.generate_reply.assert_not_called()


def test_requests_before_startup_get_json_error():
    client = TestClient(create_app())
    response = client.post("/get-messages", json={"userId": "ann_x_com"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}


class TestBuildServices:

    def test_unreachable_database_fails_startup(self):
        mock_store = MagicMock()
        mock_store.is_healthy.return_value = False
        with patch("chat_api.dependencies.ChatStore", return_value=mock_store), \
             patch("chat_api.dependencies.create_directory") as mock_directory, \
             patch("chat_api.dependencies.create_ai_client") as mock_ai:
            with pytest.raises(RuntimeError, match="not reachable"):
                build_services()
        mock_store.create_tables.assert_not_called()
        mock_directory.assert_not_called()
        mock_ai.assert_not_called()

    def test_healthy_database_creates_tables(self):
        mock_store = MagicMock()
        mock_store.is_healthy.return_value = True
        with patch("chat_api.dependencies.ChatStore", return_value=mock_store), \
             patch("chat_api.dependencies.create_directory") as mock_directory, \
             patch("chat_api.dependencies.create_ai_client") as mock_ai:
            services = build_services()
        mock_store.create_tables.assert_called_once()
        assert services.store is mock_store
        assert services.directory is mock_directory.return_value
        assert services.ai is mock_ai.return_value
