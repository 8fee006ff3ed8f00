"""Test helpers for authentication, users, and the fake model provider.

Provides:
- Token minting for test authentication
- Header generation for test requests
- User creation helpers
- FakeLLMRouter: scripted stand-in for LLMRouter
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

import jwt
from sqlalchemy.orm import Session, sessionmaker

from termsmith.auth.session import SESSION_TOKEN_ALGORITHM, mint_session_token
from termsmith.db.models import User
from termsmith.services.llm import LLMChunk, LLMRequest

TEST_AUTH_SECRET = "test-auth-secret-that-is-long-enough-1234"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(user_id: UUID | str, expires_in: int = DEFAULT_EXPIRES_IN) -> str:
    """Mint a valid session token for user_id."""
    return mint_session_token(UUID(str(user_id)), ttl_seconds=expires_in)


def mint_expired_token(user_id: UUID | str) -> str:
    """Mint a session token that expired 1 hour ago."""
    return mint_test_token(user_id, expires_in=-3600)


def mint_token_with_bad_signature(user_id: UUID | str) -> str:
    """Mint a token signed with a different secret."""
    now = int(time.time())
    payload = {"sub": str(user_id), "iat": now, "exp": now + DEFAULT_EXPIRES_IN}
    return jwt.encode(
        payload, "some-other-secret-that-is-also-long-enough", algorithm=SESSION_TOKEN_ALGORITHM
    )


def auth_headers(user_id: UUID | str, **token_kwargs) -> dict[str, str]:
    """Return headers dict with valid Authorization for the given user."""
    token = mint_test_token(user_id, **token_kwargs)
    return {"Authorization": f"Bearer {token}"}


def create_test_user_id() -> UUID:
    """Generate a random UUID for a test user."""
    return uuid4()


def create_user(
    session_factory: sessionmaker[Session],
    *,
    email: str | None = None,
    full_name: str | None = None,
    deleted: bool = False,
) -> UUID:
    """Insert a user row and return its id."""
    user_id = create_test_user_id()
    with session_factory() as db:
        db.add(
            User(
                id=user_id,
                email=email or f"{user_id.hex[:12]}@example.com",
                full_name=full_name,
                deleted_at=datetime.now(UTC) if deleted else None,
            )
        )
        db.commit()
    return user_id


def chat_payload(chat_id: str, message: str = "Draft terms for my bakery app", **extra) -> dict:
    """Body for POST /api/chat."""
    return {"message": message, "chatId": chat_id, "model": "gemini-2.5-flash-lite", **extra}


# =============================================================================
# Fake model provider
# =============================================================================


@dataclass
class FakeStream:
    """Script for one generate_stream call.

    tokens are yielded in order; then the stream hangs (hang=True), raises
    error, or finishes with a terminal chunk.
    """

    tokens: list[str] = field(default_factory=list)
    error: Exception | None = None
    hang: bool = False


@dataclass
class FakeCall:
    provider: str
    request: LLMRequest
    api_key: str
    timeout_s: float | None
    chat_id: str | None


class FakeLLMRouter:
    """Records calls and replays FakeStream scripts, the last one repeating."""

    def __init__(self, *streams: FakeStream):
        self._streams = list(streams) or [FakeStream(tokens=["Hello", ", world"])]
        self.calls: list[FakeCall] = []
        self.hanging = asyncio.Event()

    async def generate_stream(
        self,
        provider: str,
        req: LLMRequest,
        api_key: str,
        *,
        timeout_s: float | None = None,
        chat_id: str | None = None,
    ):
        script = self._streams[min(len(self.calls), len(self._streams) - 1)]
        self.calls.append(FakeCall(provider, req, api_key, timeout_s, chat_id))

        for token in script.tokens:
            yield LLMChunk(delta_text=token, done=False)

        if script.hang:
            self.hanging.set()
            await asyncio.Event().wait()
        if script.error is not None:
            raise script.error

        yield LLMChunk(delta_text="", done=True)
