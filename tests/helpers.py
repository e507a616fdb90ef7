"""Test doubles and response helpers shared across the test suite."""

from __future__ import annotations

import json
from typing import Any

from generic_session.session import MemoryBackend

COOKIE_NAME = "koa.sid"
PREFIX = "koa:sess:"


class RecordingBackend(MemoryBackend):
    """MemoryBackend that records every contract call."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        self.calls.append(("get", key))
        return await super().get(key)

    async def set(self, key: str, record: dict[str, Any], max_age: int | None) -> None:
        self.calls.append(("set", key))
        self.ttls[key] = max_age
        await super().set(key, record, max_age)

    async def destroy(self, key: str) -> None:
        self.calls.append(("destroy", key))
        await super().destroy(key)

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    def record(self, session_id: str) -> dict[str, Any] | None:
        """Peek at a stored record without going through the async API."""
        entry = self._store.get(PREFIX + session_id)
        return json.loads(entry[0]) if entry else None


class FailingBackend:
    """Backend whose every call fails, like an unreachable database."""

    def __init__(self, *, fail_get: bool = True, fail_set: bool = True) -> None:
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.inner = MemoryBackend()

    async def get(self, key):
        if self.fail_get:
            raise ConnectionError("store unreachable")
        return await self.inner.get(key)

    async def set(self, key, record, max_age):
        if self.fail_set:
            raise ConnectionError("store unreachable")
        await self.inner.set(key, record, max_age)

    async def destroy(self, key):
        if self.fail_set:
            raise ConnectionError("store unreachable")
        await self.inner.destroy(key)


def session_cookie(resp) -> str | None:
    """The session cookie's ``name=value`` from a response, if any."""
    for header in resp.headers.get_list("set-cookie"):
        pair = header.split(";")[0]
        if pair.startswith(f"{COOKIE_NAME}="):
            return pair
    return None


def session_cookie_header(resp) -> str | None:
    """The full Set-Cookie header for the session cookie, if any."""
    for header in resp.headers.get_list("set-cookie"):
        if header.startswith(f"{COOKIE_NAME}="):
            return header
    return None
