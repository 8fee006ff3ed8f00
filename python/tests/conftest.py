"""Pytest configuration and fixtures for Termsmith tests.

Test isolation strategy:
- Every test gets its own SQLite database file under tmp_path, created with
  Base.metadata.create_all
- Settings come from environment variables set per test and the settings
  cache is cleared around every test
- API tests run the real app (lifespan included) with app.state.llm_router
  swapped for a FakeLLMRouter, so no provider is ever called
"""

import sys
from collections.abc import Generator
from pathlib import Path
from uuid import UUID

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from termsmith.app import add_request_id_middleware, create_app
from termsmith.config import clear_settings_cache
from termsmith.db.engine import create_db_engine
from termsmith.db.models import Base
from termsmith.db.session import create_session_factory
from tests.helpers import TEST_AUTH_SECRET, FakeLLMRouter, create_user


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path) -> Generator[str, None, None]:
    """Point settings at a throw-away database and fake provider keys.

    Yields:
        The DATABASE_URL used by this test.
    """
    database_url = f"sqlite:///{tmp_path / 'termsmith_test.db'}"
    monkeypatch.setenv("TERMSMITH_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("AUTH_SECRET", TEST_AUTH_SECRET)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-openai")
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    monkeypatch.delenv("LLM_READ_TIMEOUT_S", raising=False)
    monkeypatch.delenv("CHAT_DISCONNECT_DEBOUNCE_MS", raising=False)

    clear_settings_cache()
    yield database_url
    clear_settings_cache()


@pytest.fixture
def engine(test_env: str) -> Generator[Engine, None, None]:
    """Engine on the test database with the schema created."""
    engine = create_db_engine(test_env)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """A plain session; each test has its own database so nothing is rolled back."""
    with session_factory() as session:
        yield session


@pytest.fixture
def user_id(session_factory: sessionmaker[Session]) -> UUID:
    """An active user row."""
    return create_user(session_factory)


@pytest.fixture
def other_user_id(session_factory: sessionmaker[Session]) -> UUID:
    """A second active user row."""
    return create_user(session_factory)


@pytest.fixture
def fake_router() -> FakeLLMRouter:
    """Default provider script: "Hello" then ", world"."""
    return FakeLLMRouter()


@pytest.fixture
def app(engine: Engine) -> FastAPI:
    """The application with request-id middleware, schema already created."""
    app = create_app()
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI, fake_router: FakeLLMRouter) -> Generator[TestClient, None, None]:
    """Test client with the lifespan running and the fake router installed.

    Tests that need a different provider script override the fake_router
    fixture or assign app.state.llm_router themselves.
    """
    with TestClient(app) as client:
        app.state.llm_router = fake_router
        yield client
