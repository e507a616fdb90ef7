"""Shared fixtures for the generic-session test suite."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from generic_session import config
from generic_session.config import Settings, override_settings
from generic_session.main import create_app
from helpers import RecordingBackend


# ── Settings ──────────────────────────────────────────────────────────────


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        session_secret="test-secret-key-for-sessions",
        session_path="/session",
        debug_hooks=True,
    )


@pytest.fixture(autouse=True)
def _reset_settings():
    yield
    config.settings = None


# ── App & Client ──────────────────────────────────────────────────────────


@pytest.fixture
def session_backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def app(test_settings, session_backend):
    override_settings(test_settings)
    return create_app(session_backend=session_backend)


@pytest.fixture
def client(app) -> TestClient:
    """TestClient with cookie persistence; server errors come back as 500s."""
    return TestClient(app, cookies={}, raise_server_exceptions=False)


@pytest.fixture
def make_client(test_settings, session_backend):
    """Factory for a client on an app built with extra middleware options."""

    def _make(**session_options) -> TestClient:
        override_settings(test_settings)
        app = create_app(session_backend=session_backend, **session_options)
        return TestClient(app, cookies={}, raise_server_exceptions=False)

    return _make
