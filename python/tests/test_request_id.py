"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on relay 400/401 bodies and streamed responses
- Request ID in error envelope body
"""

from uuid import UUID

from fastapi.testclient import TestClient

from termsmith.middleware.request_id import (
    is_valid_request_id,
    normalize_request_id,
)
from tests.helpers import auth_headers, chat_payload


class TestRequestIdMiddleware:
    """Tests for X-Request-ID middleware."""

    def test_request_id_generated_when_missing(self, client: TestClient):
        """Request ID is generated when not provided."""
        response = client.get("/health")

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])  # Raises if invalid

    def test_request_id_preserved_when_valid(self, client: TestClient):
        """Valid non-UUID request IDs are preserved."""
        custom_id = "abc_def-123"

        response = client.get("/health", headers={"X-Request-ID": custom_id})

        assert response.headers["X-Request-ID"] == custom_id

    def test_request_id_uuid_normalized_to_lowercase(self, client: TestClient):
        """UUID request IDs are normalized to lowercase."""
        response = client.get(
            "/health", headers={"X-Request-ID": "550E8400-E29B-41D4-A716-446655440000"}
        )

        assert response.headers["X-Request-ID"] == "550e8400-e29b-41d4-a716-446655440000"

    def test_request_id_replaced_when_invalid(self, client: TestClient):
        """Invalid request IDs (with spaces) are replaced."""
        invalid_id = "bad id with spaces"

        response = client.get("/health", headers={"X-Request-ID": invalid_id})

        new_id = response.headers["X-Request-ID"]
        assert new_id != invalid_id
        UUID(new_id)

    def test_request_id_replaced_when_too_long(self, client: TestClient):
        """Request IDs longer than 128 bytes are replaced."""
        long_id = "a" * 200

        response = client.get("/health", headers={"X-Request-ID": long_id})

        new_id = response.headers["X-Request-ID"]
        assert new_id != long_id
        UUID(new_id)

    def test_request_id_present_on_validation_failure(self, client: TestClient):
        """The relay's flat 400 body still carries the header."""
        response = client.post("/api/chat", json={})

        assert response.status_code == 400
        assert "X-Request-ID" in response.headers

    def test_request_id_present_on_auth_failure(self, client: TestClient):
        """Auth failures still include X-Request-ID in response."""
        response = client.post("/api/chat", json=chat_payload("chat-1"))

        assert response.status_code == 401
        assert "X-Request-ID" in response.headers

    def test_request_id_present_on_streamed_response(self, client: TestClient, user_id):
        response = client.post(
            "/api/chat",
            json=chat_payload("chat-1"),
            headers={**auth_headers(user_id), "X-Request-ID": "stream-req-1"},
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "stream-req-1"

    def test_error_response_includes_request_id_in_body(self, client: TestClient, user_id):
        """Error envelopes include request_id in the body."""
        response = client.get("/api/chats/missing-chat/document", headers=auth_headers(user_id))

        assert response.status_code == 404
        data = response.json()
        assert data["error"]["request_id"] == response.headers["X-Request-ID"]


class TestRequestIdValidation:
    """Tests for request ID validation edge cases."""

    def test_request_id_with_dots_valid(self):
        assert is_valid_request_id("request.id.with.dots")

    def test_request_id_with_unicode_invalid(self):
        assert not is_valid_request_id("réquest")

    def test_request_id_exactly_128_bytes_valid(self):
        assert is_valid_request_id("a" * 128)

    def test_request_id_129_bytes_invalid(self):
        assert not is_valid_request_id("a" * 129)

    def test_non_uuid_ids_not_normalized(self):
        assert normalize_request_id("Mixed-Case_ID") == "Mixed-Case_ID"
