"""FastAPI demo application for the generic-session middleware.

Wires SessionMiddleware from environment settings and serves a small
per-client counter under /session.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from .config import get_settings
from .routes import counter, fallback, health
from .session import MemoryBackend, SessionBackend, SessionMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: begin sweeping expired sessions from the memory store."""
    backend = app.state.session_backend
    if isinstance(backend, MemoryBackend):
        backend.start()
        logger.info("Memory session store: sweeping every %.0fs", get_settings().session_sweep_interval)
    try:
        yield
    finally:
        if isinstance(backend, MemoryBackend):
            await backend.close()


def _force_id_from_query(conn) -> str | None:
    return conn.query_params.get("force_session_id")


def create_app(
    *,
    session_backend: SessionBackend | None = None,
    **session_options: Any,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_backend: Custom session backend (default: MemoryBackend).
        session_options: Extra SessionMiddleware arguments (hooks such as
            ``gen_sid``, ``valid`` or ``before_save``); they override
            values taken from settings.
    """
    s = get_settings()
    app = FastAPI(title="Generic Session Demo", lifespan=lifespan)

    backend = (
        session_backend
        if session_backend is not None
        else MemoryBackend(sweep_interval=s.session_sweep_interval)
    )
    app.state.session_backend = backend

    options: dict[str, Any] = {
        "secret": s.session_secret,
        "backend": backend,
        "key": s.session_key,
        "prefix": s.session_prefix,
        "cookie": s.cookie_options(),
        "defer": s.session_defer,
        "rolling": s.session_rolling,
        "allow_empty": s.session_allow_empty,
        "reconnect_timeout": s.session_reconnect_timeout,
        "environment": s.environment,
    }
    if s.debug_hooks:
        options["force_id"] = _force_id_from_query
    options.update(session_options)

    # Server-side sessions
    app.add_middleware(SessionMiddleware, **options)

    # Routes; the catch-all goes last
    app.include_router(health.router)
    app.include_router(counter.router)
    app.include_router(fallback.router)

    return app
