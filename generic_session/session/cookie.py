"""Session cookie attributes and session id transport."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Literal, Protocol, Sequence

from itsdangerous import BadData, URLSafeTimedSerializer
from pydantic import BaseModel
from starlette.requests import HTTPConnection

COOKIE_NAME = "koa.sid"
MAX_AGE = 24 * 3600  # 1 day

_EPOCH = "Thu, 01 Jan 1970 00:00:00 GMT"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CookieOptions(BaseModel):
    """Attributes of the session cookie.

    Each session carries its own copy (persisted with the session record),
    so a handler can change an attribute for one client.
    """

    max_age: int | None = MAX_AGE
    expires: datetime | None = None
    path: str = "/"
    domain: str | None = None
    http_only: bool = True
    secure: bool = False
    same_site: Literal["lax", "strict", "none"] | None = "lax"
    overwrite: bool = True
    signed: bool = True

    def ttl(self) -> int | None:
        """Store lifetime in seconds implied by these attributes."""
        if self.max_age is not None:
            return self.max_age
        if self.expires is not None:
            remaining = (_as_utc(self.expires) - datetime.now(timezone.utc)).total_seconds()
            return max(0, math.ceil(remaining))
        return None

    def render(self, name: str, value: str, *, delete: bool = False) -> str:
        """Build a Set-Cookie header value."""
        parts = [f"{name}={value}"]
        if delete:
            parts.append("Max-Age=0")
            parts.append(f"Expires={_EPOCH}")
        elif self.max_age is not None:
            expires = datetime.now(timezone.utc) + timedelta(seconds=self.max_age)
            parts.append(f"Max-Age={self.max_age}")
            parts.append(f"Expires={format_datetime(expires, usegmt=True)}")
        elif self.expires is not None:
            parts.append(f"Expires={format_datetime(_as_utc(self.expires), usegmt=True)}")

        parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site:
            parts.append(f"SameSite={self.same_site}")
        if self.secure:
            parts.append("Secure")
        return "; ".join(parts)


class SessionIdStore(Protocol):
    """Carries the session id between client and server.

    ``set`` and ``reset`` return a response header as ``(name, value)``,
    or None when nothing needs to be sent.
    """

    def get(self, conn: HTTPConnection) -> str | None:
        ...

    def set(self, session_id: str, cookie: CookieOptions) -> tuple[str, str] | None:
        ...

    def reset(self, cookie: CookieOptions) -> tuple[str, str] | None:
        ...


class CookieIdStore:
    """Session id in a (optionally signed) cookie.

    ``secret`` may be a list of keys for rotation; the last one signs,
    all of them verify. Whether values are signed is fixed here for every
    session, so verification on the way in always matches the way out.
    """

    def __init__(
        self,
        secret: str | Sequence[str] | None,
        name: str = COOKIE_NAME,
        signed: bool = True,
        max_age: int | None = MAX_AGE,
    ) -> None:
        if signed and not secret:
            raise ValueError("A secret is required to sign session cookies")
        self.name = name
        self.signed = signed
        self.max_age = max_age
        self.signer = URLSafeTimedSerializer(secret) if secret else None

    def get(self, conn: HTTPConnection) -> str | None:
        raw = conn.cookies.get(self.name)
        if not raw:
            return None
        if not self.signed:
            return raw
        try:
            session_id = self.signer.loads(raw, max_age=self.max_age)
        except BadData:
            return None
        return session_id if isinstance(session_id, str) and session_id else None

    def set(self, session_id: str, cookie: CookieOptions) -> tuple[str, str]:
        if self.signed:
            value = self.signer.dumps(session_id)
        else:
            value = session_id
        return "set-cookie", cookie.render(self.name, value)

    def reset(self, cookie: CookieOptions) -> tuple[str, str]:
        return "set-cookie", cookie.render(self.name, "", delete=True)
