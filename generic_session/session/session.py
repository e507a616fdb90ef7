"""Session object exposed to request handlers."""

from __future__ import annotations

import hashlib
import json
from collections.abc import MutableMapping
from typing import Any, Awaitable, Callable, Iterator, Mapping

from pydantic import ValidationError

from ..errors import SessionLoadError
from .cookie import CookieOptions

JSONValue = Any  # str | int | float | bool | None | list | dict[str, JSONValue]

COOKIE_FIELD = "cookie"


def _check_json_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int, float)):
        return
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check_json_value(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Session field {path} has a non-string key: {key!r}")
            _check_json_value(item, f"{path}.{key}")
        return
    raise TypeError(
        f"Session field {path} is not JSON-serializable: {type(value).__name__}"
    )


class Session(MutableMapping[str, JSONValue]):
    """Server-side session state for one client.

    Behaves like a dict of JSON values. Mutations are tracked so the
    middleware only writes back sessions that are new or changed.

    Attributes:
        id: The current session identifier (changes on :meth:`regenerate`).
        cookie: Cookie attributes for this session.
    """

    def __init__(
        self,
        session_id: str,
        data: Mapping[str, JSONValue] | None = None,
        *,
        cookie: CookieOptions | None = None,
        is_new: bool = True,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.id = session_id
        self.cookie = cookie or CookieOptions()
        self._data: dict[str, JSONValue] = {}
        for key, value in (data or {}).items():
            _check_json_value(value, key)
            self._data[key] = value
        self._is_new = is_new
        self._changed = False
        self._destroyed = False
        self._id_factory = id_factory
        self._abandoned_ids: list[str] = []
        self._original_hash = self._hash()

    @classmethod
    def from_record(
        cls,
        session_id: str,
        record: Mapping[str, Any],
        *,
        default_cookie: CookieOptions,
        id_factory: Callable[[], str] | None = None,
    ) -> Session:
        """Hydrate a persisted session record."""
        fields = dict(record)
        raw_cookie = fields.pop(COOKIE_FIELD, None)
        try:
            cookie = (
                CookieOptions.model_validate(raw_cookie)
                if raw_cookie is not None
                else default_cookie.model_copy()
            )
            return cls(session_id, fields, cookie=cookie, is_new=False, id_factory=id_factory)
        except (ValidationError, TypeError) as e:
            raise SessionLoadError(f"Malformed session record: {e}") from e

    # ── Mapping protocol ──────────────────────────────────────────────────

    def __getitem__(self, key: str) -> JSONValue:
        return self._data[key]

    def __setitem__(self, key: str, value: JSONValue) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Session field names must be strings, not {type(key).__name__}")
        if key == COOKIE_FIELD:
            raise ValueError(f"{COOKIE_FIELD!r} is reserved; use session.cookie")
        _check_json_value(value, key)
        self._data[key] = value
        self._changed = True

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._changed = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Session(id={self.id[:8]!r}..., fields={sorted(self._data)!r})"

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @property
    def is_new(self) -> bool:
        return self._is_new

    @property
    def is_changed(self) -> bool:
        return self._changed or self._hash() != self._original_hash

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def max_age(self) -> int | None:
        return self.cookie.max_age

    @property
    def abandoned_ids(self) -> list[str]:
        """Persisted ids given up by :meth:`regenerate` during this request."""
        return list(self._abandoned_ids)

    def regenerate(self, *, keep_data: bool = False) -> str:
        """Switch to a fresh session id and return it.

        The old id's stored record is destroyed when the response is
        finalized. Fields are dropped unless ``keep_data`` is set.
        """
        if self._id_factory is None:
            raise RuntimeError("Session has no id factory; it is not bound to a middleware")
        if not self._is_new:
            self._abandoned_ids.append(self.id)
        self.id = self._id_factory()
        if not keep_data:
            self._data.clear()
        self._is_new = True
        self._destroyed = False
        self._changed = True
        return self.id

    def destroy(self) -> None:
        """Clear all fields and remove the session from the store."""
        self._data.clear()
        self._destroyed = True
        self._changed = True

    def replace(self, data: Mapping[str, JSONValue]) -> None:
        """Replace every field with ``data``.

        A ``cookie`` entry, as found in :meth:`to_record` output, replaces
        the cookie attributes instead of becoming a field.
        """
        fields = dict(data)
        raw_cookie = fields.pop(COOKIE_FIELD, None)
        if raw_cookie is not None:
            self.cookie = CookieOptions.model_validate(raw_cookie)
        self._data.clear()
        for key, value in fields.items():
            self[key] = value
        self._destroyed = False
        self._changed = True

    def to_record(self) -> dict[str, Any]:
        """Serializable form handed to the store."""
        return {COOKIE_FIELD: self.cookie.model_dump(mode="json"), **self._data}

    def _hash(self) -> str:
        try:
            payload = json.dumps(self.to_record(), sort_keys=True)
        except (TypeError, ValueError):
            # A non-JSON value slipped in through a nested container.
            return ""
        return hashlib.sha256(payload.encode()).hexdigest()


class DeferredSession:
    """Lazily loaded session, exposed when the middleware runs with ``defer``.

    ``await request.state.session.load()`` fetches the session on first use;
    later calls return the same object. Unused deferred sessions are never
    written back.
    """

    def __init__(self, loader: Callable[[], Awaitable[Session | None]]) -> None:
        self._loader = loader
        self._session: Session | None = None
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def session(self) -> Session | None:
        return self._session

    async def load(self) -> Session | None:
        if not self._loaded:
            self._session = await self._loader()
            self._loaded = True
        return self._session
