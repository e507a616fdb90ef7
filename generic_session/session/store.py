"""Store wrapper: key prefixing, TTL derivation and error classification."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import SessionLoadError, SessionSaveError, StoreUnavailableError
from .backend import SessionBackend, StoreHealth
from .cookie import CookieOptions

logger = logging.getLogger(__name__)

PREFIX = "koa:sess:"


class SessionStore:
    """Binds a :class:`SessionBackend` to a key prefix.

    Backend failures surface as :class:`SessionLoadError` or
    :class:`SessionSaveError` with the original exception chained, so the
    middleware can degrade instead of failing the request.
    """

    def __init__(self, backend: SessionBackend, prefix: str = PREFIX) -> None:
        self.backend = backend
        self.prefix = prefix

    @property
    def health(self) -> StoreHealth | None:
        return getattr(self.backend, "health", None)

    def is_ready(self) -> bool:
        health = self.health
        return health is None or health.is_ready()

    async def wait_ready(self, timeout: float) -> bool:
        health = self.health
        if health is None:
            return True
        return await health.wait_ready(timeout)

    async def ensure_ready(self, timeout: float) -> None:
        """Like wait_ready, but a store still down raises StoreUnavailableError."""
        if not await self.wait_ready(timeout):
            raise StoreUnavailableError(f"Session store not ready after {timeout:.1f}s")

    async def get(self, session_id: str) -> dict[str, Any] | None:
        try:
            record = await self.backend.get(self.prefix + session_id)
        except Exception as e:
            raise SessionLoadError(f"Failed to load session: {e}") from e
        if record is None:
            return None
        if not isinstance(record, dict):
            raise SessionLoadError(
                f"Malformed session record: expected object, got {type(record).__name__}"
            )
        return record

    async def set(self, session_id: str, record: dict[str, Any], cookie: CookieOptions) -> None:
        try:
            await self.backend.set(self.prefix + session_id, record, cookie.ttl())
        except Exception as e:
            raise SessionSaveError(f"Failed to save session: {e}") from e

    async def destroy(self, session_id: str) -> None:
        try:
            await self.backend.destroy(self.prefix + session_id)
        except Exception as e:
            raise SessionSaveError(f"Failed to destroy session: {e}") from e
