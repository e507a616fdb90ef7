"""Session storage backends."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = 60  # seconds


@runtime_checkable
class SessionBackend(Protocol):
    """Protocol for server-side session storage.

    Keys arrive already prefixed. ``max_age`` is in seconds; ``None`` means
    the record never expires on its own.

    Backends holding a persistent connection may also expose a ``health``
    attribute (a :class:`StoreHealth`) so the middleware can hold requests
    while the connection is down.
    """

    async def get(self, key: str) -> dict[str, Any] | None:
        """Load a session record. Returns None if not found or expired."""
        ...

    async def set(self, key: str, record: dict[str, Any], max_age: int | None) -> None:
        """Store a session record, replacing any previous one."""
        ...

    async def destroy(self, key: str) -> None:
        """Delete a session record."""
        ...


class StoreHealth:
    """Connection readiness of a session backend.

    Backends call :meth:`mark_connected` / :meth:`mark_disconnected` from
    their own connection callbacks; listeners registered with
    :meth:`subscribe` receive ``"connect"`` or ``"disconnect"``.
    """

    def __init__(self, connected: bool = True) -> None:
        self._ready = asyncio.Event()
        if connected:
            self._ready.set()
        self._listeners: list[Callable[[str], None]] = []

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def subscribe(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def mark_connected(self) -> None:
        if self._ready.is_set():
            return
        self._ready.set()
        self._notify("connect")

    def mark_disconnected(self) -> None:
        if not self._ready.is_set():
            return
        self._ready.clear()
        self._notify("disconnect")

    async def wait_ready(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the store. Returns readiness."""
        if self._ready.is_set():
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _notify(self, event: str) -> None:
        logger.info("Session store %s", event)
        for listener in list(self._listeners):
            listener(event)


class MemoryBackend:
    """In-memory session backend for development/testing.

    Not suitable for production: sessions are lost on restart, expired
    entries only leave memory on access or sweep, and nothing is shared
    across processes.
    """

    def __init__(self, sweep_interval: float = SWEEP_INTERVAL) -> None:
        self._store: dict[str, tuple[str, float | None]] = {}
        self._sweep_interval = sweep_interval
        self._sweeper: asyncio.Task[None] | None = None

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        payload, expire_at = entry
        if expire_at is not None and time.monotonic() >= expire_at:
            del self._store[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, record: dict[str, Any], max_age: int | None) -> None:
        expire_at = time.monotonic() + max_age if max_age is not None else None
        self._store[key] = (json.dumps(record), expire_at)

    async def destroy(self, key: str) -> None:
        self._store.pop(key, None)

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = time.monotonic()
        expired = [
            key
            for key, (_, expire_at) in self._store.items()
            if expire_at is not None and now >= expire_at
        ]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug("Swept %d expired sessions", len(expired))
        return len(expired)

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def close(self) -> None:
        """Stop the periodic sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    def __len__(self) -> int:
        return len(self._store)
