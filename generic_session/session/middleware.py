"""ASGI server-side session middleware.

Only the session id travels in a (signed) cookie; session data lives in a
SessionBackend. The session is loaded before the downstream app runs and
written back when the response starts. If the app raises before starting a
response, the session is still written back and the error re-raised, so
changes made before the failure are not lost.
"""

from __future__ import annotations

import functools
import logging
import secrets
from typing import Any, Callable, Mapping, Sequence

from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .. import events
from ..errors import SessionError, SessionLoadError, SessionSaveError, StoreUnavailableError
from .backend import MemoryBackend, SessionBackend
from .cookie import COOKIE_NAME, CookieIdStore, CookieOptions, SessionIdStore
from .session import DeferredSession, Session
from .store import PREFIX, SessionStore

logger = logging.getLogger(__name__)

RECONNECT_TIMEOUT = 10.0  # seconds
SID_BYTES = 24

MEMORY_STORE_WARNING = (
    "Warning: the MemoryStore session backend is not designed for a production "
    "environment, as it will leak memory, and will not scale past a single process."
)

# (header name, header value, replace earlier Set-Cookie for the same cookie)
_Header = tuple[str, str, bool]

ErrorHandler = Callable[[SessionError, str, HTTPConnection], None]


def default_gen_sid(conn: HTTPConnection) -> str:
    return secrets.token_urlsafe(SID_BYTES)


def default_error_handler(error: SessionError, phase: str, conn: HTTPConnection) -> None:
    """Log store failures and carry on without the session write."""
    logger.error("Session %s failed on %s: %s", phase, conn.scope.get("path"), error, exc_info=error)
    cause = error.__cause__ or error
    events.session_event(
        activity=events.Activity.STORE_ERROR,
        severity_id=events.Severity.MEDIUM,
        path=conn.scope.get("path"),
        message=f"Session {phase} failed",
        extra={"phase": phase, "error": type(cause).__name__},
    )


class SessionMiddleware:
    """ASGI middleware for server-side sessions.

    Reads the session id from a cookie, loads session data from the
    backend, and attaches it to ``request.state.session``. When the
    response starts it persists, refreshes, destroys, or leaves the stored
    session alone depending on what the handler did:

    * ``request.state.session = None`` or ``session.destroy()`` removes it;
    * assigning a plain dict replaces every field;
    * ``session.regenerate()`` moves the data to a fresh id.

    Requests outside ``cookie.path`` get ``request.state.session = None``,
    as do requests arriving while the store is not ready.

    If the app raises before starting a response and the session write
    produced a cookie, this middleware answers with its own plain-text 500
    carrying that cookie, then re-raises. Exception handlers registered on
    the app for ``Exception`` run outside this middleware, so their
    response is not sent in that case; handle errors inside the route (or
    with handlers for specific exception classes) to control the body.
    """

    def __init__(
        self,
        app: ASGIApp,
        secret: str | Sequence[str] | None = None,
        backend: SessionBackend | None = None,
        key: str = COOKIE_NAME,
        prefix: str = PREFIX,
        cookie: CookieOptions | None = None,
        defer: bool = False,
        rolling: bool = False,
        allow_empty: bool = True,
        gen_sid: Callable[[HTTPConnection], str] | None = None,
        valid: Callable[[HTTPConnection, dict[str, Any]], bool] | None = None,
        before_save: Callable[[HTTPConnection, Session], None] | None = None,
        force_id: Callable[[HTTPConnection], str | None] | None = None,
        id_store: SessionIdStore | None = None,
        error_handler: ErrorHandler | None = None,
        reconnect_timeout: float = RECONNECT_TIMEOUT,
        environment: str = "development",
    ) -> None:
        self.app = app
        self.cookie = cookie or CookieOptions()
        if backend is None:
            backend = MemoryBackend()
        if environment == "production" and isinstance(backend, MemoryBackend):
            logger.warning(MEMORY_STORE_WARNING)
        self.store = SessionStore(backend, prefix)
        self.id_store = id_store or CookieIdStore(
            secret, name=key, signed=self.cookie.signed, max_age=self.cookie.max_age
        )
        self.defer = defer
        self.rolling = rolling
        self.allow_empty = allow_empty
        self.gen_sid = gen_sid or default_gen_sid
        self.valid = valid
        self.before_save = before_save
        self.force_id = force_id
        self.error_handler = error_handler or default_error_handler
        self.reconnect_timeout = reconnect_timeout

        health = self.store.health
        if health is not None:
            health.subscribe(self._on_store_event)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        scope["state"] = scope.get("state", {})
        state = scope["state"]
        if "session" in state:
            # An outer session middleware already owns this request
            await self.app(scope, receive, send)
            return

        if not scope["path"].startswith(self.cookie.path):
            state["session"] = None
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        deferred: DeferredSession | None = None
        session: Session | None = None
        if self.defer:
            deferred = DeferredSession(functools.partial(self._load, conn))
            state["session"] = deferred
        else:
            session = await self._load(conn)
            state["session"] = session

        committed = False

        async def commit() -> list[_Header]:
            nonlocal committed
            if committed:
                return []
            committed = True
            if deferred is not None:
                if not deferred.loaded and state.get("session") is not deferred:
                    # Replaced or dropped without being loaded
                    await deferred.load()
                loaded = deferred.session
            else:
                loaded = session
            if loaded is None:
                return []
            return await self._commit(conn, state.get("session"), loaded)

        async def send_wrapper(message: Message) -> None:
            if message["type"] in ("http.response.start", "websocket.accept"):
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                for name, value, replace in await commit():
                    if replace:
                        _drop_cookie(headers, value.split("=", 1)[0])
                    headers.append(name, value)
            elif message["type"] == "websocket.close":
                await commit()

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            if not committed:
                pending = await commit()
                if pending and scope["type"] == "http":
                    await _send_error(scope, receive, send, pending)
            raise

        if not committed:
            await commit()

    async def _load(self, conn: HTTPConnection) -> Session | None:
        path = conn.scope["path"]
        try:
            await self.store.ensure_ready(self.reconnect_timeout)
        except StoreUnavailableError as e:
            logger.warning("%s; serving %s without a session", e, path)
            events.session_event(
                activity=events.Activity.STORE_UNAVAILABLE,
                severity_id=events.Severity.MEDIUM,
                path=path,
                message="Session store unavailable",
            )
            return None

        id_factory = functools.partial(self.gen_sid, conn)
        session_id = self._resolve_id(conn)
        if session_id:
            try:
                record = await self.store.get(session_id)
                if record is not None and (self.valid is None or self.valid(conn, record)):
                    return Session.from_record(
                        session_id,
                        record,
                        default_cookie=self.cookie,
                        id_factory=id_factory,
                    )
            except SessionLoadError as e:
                self.error_handler(e, "load", conn)
            logger.debug("Session %s missing or invalid, regenerating", events.short_id(session_id))

        session = Session(
            id_factory(),
            cookie=self.cookie.model_copy(),
            is_new=True,
            id_factory=id_factory,
        )
        events.session_event(
            activity=events.Activity.CREATED,
            session_id=session.id,
            path=path,
            message="Session created",
        )
        return session

    def _resolve_id(self, conn: HTTPConnection) -> str | None:
        forced = conn.scope["state"].get("session_id")
        if not forced and self.force_id is not None:
            forced = self.force_id(conn)
        if forced:
            return forced
        return self.id_store.get(conn)

    async def _commit(
        self, conn: HTTPConnection, current: Any, session: Session
    ) -> list[_Header]:
        if isinstance(current, DeferredSession):
            current = current.session
        if current is None:
            session.destroy()
        elif current is not session and isinstance(current, Mapping):
            session.replace(current)

        previous_ids = session.abandoned_ids
        for old_id in previous_ids:
            await self._destroy(conn, old_id)
        if previous_ids:
            events.session_event(
                activity=events.Activity.REGENERATED,
                session_id=session.id,
                previous_id=previous_ids[-1],
                severity_id=events.Severity.LOW,
                path=conn.scope["path"],
                message="Session id regenerated",
            )

        if session.is_destroyed or (not self.allow_empty and not session):
            if not session.is_new:
                await self._destroy(conn, session.id)
                events.session_event(
                    activity=events.Activity.DESTROYED,
                    session_id=session.id,
                    path=conn.scope["path"],
                    message="Session destroyed",
                )
            elif not session.is_destroyed:
                # Empty new session with allow_empty off: nothing to write
                return []
            return self._headers(self.id_store.reset(session.cookie), session)

        if not (self.rolling or session.is_new or session.is_changed):
            return []

        if self.before_save is not None:
            self.before_save(conn, session)
        try:
            await self.store.set(session.id, session.to_record(), session.cookie)
        except SessionSaveError as e:
            self.error_handler(e, "save", conn)
            return []
        return self._headers(self.id_store.set(session.id, session.cookie), session)

    async def _destroy(self, conn: HTTPConnection, session_id: str) -> None:
        try:
            await self.store.destroy(session_id)
        except SessionSaveError as e:
            self.error_handler(e, "destroy", conn)

    @staticmethod
    def _headers(header: tuple[str, str] | None, session: Session) -> list[_Header]:
        if header is None:
            return []
        name, value = header
        return [(name, value, session.cookie.overwrite and name.lower() == "set-cookie")]

    def _on_store_event(self, event: str) -> None:
        if event == "disconnect":
            logger.warning("Session store disconnected; requests wait up to %.1fs", self.reconnect_timeout)
            events.session_event(
                activity=events.Activity.STORE_UNAVAILABLE,
                severity_id=events.Severity.MEDIUM,
                message="Session store disconnected",
            )
        else:
            logger.info("Session store connected")


def _drop_cookie(headers: MutableHeaders, cookie_name: str) -> None:
    """Remove earlier Set-Cookie headers for ``cookie_name``."""
    prefix = f"{cookie_name}=".encode("latin-1")
    headers.raw[:] = [
        (k, v) for k, v in headers.raw if not (k == b"set-cookie" and v.startswith(prefix))
    ]


async def _send_error(scope: Scope, receive: Receive, send: Send, pending: list[_Header]) -> None:
    response = PlainTextResponse("Internal Server Error", status_code=500)
    for name, value, _ in pending:
        response.headers.append(name, value)
    await response(scope, receive, send)
