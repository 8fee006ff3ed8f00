"""Tests for the chat history read endpoints.

All routes are owner-scoped and use the standard envelope:
- GET /api/chats
- GET /api/chats/{chat_id}
- GET /api/chats/{chat_id}/document
"""

from fastapi.testclient import TestClient

from termsmith.services.chat_history import append_turn
from tests.helpers import auth_headers

DUAL_FORMAT_ANSWER = (
    "[MARKDOWN]\n# Terms of Service\n\n## 1. Acceptance\n[HTML]\n"
    "```html\n<div><h1>Terms of Service</h1></div>\n```"
)


def _seed(session_factory, user_id, chat_id="chat-1", prompt="Bakery terms", response="ok"):
    with session_factory() as db:
        append_turn(db, chat_id=chat_id, user_id=user_id, prompt=prompt, response=response)


class TestListChats:
    def test_requires_session(self, client: TestClient):
        response = client.get("/api/chats")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_empty(self, client: TestClient, user_id):
        response = client.get("/api/chats", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json() == {"data": []}

    def test_only_own_chats(self, client: TestClient, session_factory, user_id, other_user_id):
        _seed(session_factory, user_id, chat_id="mine")
        _seed(session_factory, other_user_id, chat_id="theirs")

        data = client.get("/api/chats", headers=auth_headers(user_id)).json()["data"]

        assert [c["id"] for c in data] == ["mine"]
        assert data[0]["title"] == "Bakery terms"
        assert [m["role"] for m in data[0]["messages"]] == ["user", "model"]
        assert "created_at" in data[0]


class TestGetChat:
    def test_own_chat(self, client: TestClient, session_factory, user_id):
        _seed(session_factory, user_id)

        response = client.get("/api/chats/chat-1", headers=auth_headers(user_id))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == "chat-1"
        assert data["messages"][1] == {
            "role": "model",
            "parts": [{"text": "ok"}],
            "kind": "normal",
        }

    def test_missing_chat_is_null(self, client: TestClient, user_id):
        response = client.get("/api/chats/nope", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json() == {"data": None}

    def test_foreign_chat_is_null(self, client: TestClient, session_factory, user_id, other_user_id):
        _seed(session_factory, user_id)

        response = client.get("/api/chats/chat-1", headers=auth_headers(other_user_id))

        assert response.json() == {"data": None}


class TestGetChatDocument:
    def test_split_latest_answer(self, client: TestClient, session_factory, user_id):
        _seed(session_factory, user_id, response="[MARKDOWN]old")
        _seed(session_factory, user_id, prompt="Add refunds", response=DUAL_FORMAT_ANSWER)

        response = client.get("/api/chats/chat-1/document", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json() == {
            "data": {
                "chat_id": "chat-1",
                "markdown": "# Terms of Service\n\n## 1. Acceptance",
                "html": "<div><h1>Terms of Service</h1></div>",
            }
        }

    def test_missing_chat_is_404(self, client: TestClient, user_id):
        response = client.get("/api/chats/nope/document", headers=auth_headers(user_id))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_CHAT_NOT_FOUND"

    def test_foreign_chat_is_404(self, client: TestClient, session_factory, user_id, other_user_id):
        _seed(session_factory, user_id, response=DUAL_FORMAT_ANSWER)

        response = client.get("/api/chats/chat-1/document", headers=auth_headers(other_user_id))

        assert response.status_code == 404
