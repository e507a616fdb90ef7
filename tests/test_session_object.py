"""Tests for the Session mapping and its change tracking."""

import itertools

import pytest

from generic_session.errors import SessionLoadError
from generic_session.session import CookieOptions, DeferredSession, Session


def _ids():
    counter = itertools.count(1)
    return lambda: f"sid-{next(counter)}"


def _loaded(data=None, **kwargs):
    return Session("sid-0", data or {}, is_new=False, id_factory=_ids(), **kwargs)


# ── Change tracking ───────────────────────────────────────────────────────


def test_new_session_flags():
    session = Session("sid-0")
    assert session.is_new
    assert not session.is_changed
    assert not session.is_destroyed
    assert len(session) == 0


def test_loaded_session_is_unchanged_until_written():
    session = _loaded({"count": 1})
    assert not session.is_new
    assert not session.is_changed
    session["count"] = 2
    assert session.is_changed


def test_reading_does_not_mark_changed():
    session = _loaded({"count": 1, "items": [1, 2]})
    assert session["count"] == 1
    assert session.get("missing") is None
    assert list(session) == ["count", "items"]
    assert not session.is_changed


def test_nested_mutation_is_detected():
    session = _loaded({"items": [1, 2]})
    session["items"].append(3)
    assert session.is_changed


def test_delete_marks_changed():
    session = _loaded({"count": 1})
    del session["count"]
    assert session.is_changed
    assert "count" not in session


def test_cookie_change_marks_changed():
    session = _loaded()
    session.cookie.http_only = False
    assert session.is_changed


def test_non_json_value_rejected():
    session = Session("sid-0")
    with pytest.raises(TypeError, match="not JSON-serializable"):
        session["when"] = object()
    with pytest.raises(TypeError, match="non-string key"):
        session["nested"] = {1: "one"}
    assert not session.is_changed


def test_non_string_field_name_rejected():
    with pytest.raises(TypeError):
        Session("sid-0")[1] = "one"


def test_cookie_field_is_reserved():
    with pytest.raises(ValueError, match="reserved"):
        Session("sid-0")["cookie"] = {"path": "/"}


def test_max_age_follows_cookie():
    session = Session("sid-0", cookie=CookieOptions(max_age=60))
    assert session.max_age == 60
    session.cookie.max_age = None
    assert session.max_age is None


# ── Lifecycle operations ──────────────────────────────────────────────────


def test_regenerate_clears_fields_and_abandons_old_id():
    session = _loaded({"count": 3})
    new_id = session.regenerate()
    assert new_id == "sid-1" == session.id
    assert session.abandoned_ids == ["sid-0"]
    assert session.is_new
    assert len(session) == 0


def test_regenerate_keeping_data():
    session = _loaded({"count": 3})
    session.regenerate(keep_data=True)
    assert session["count"] == 3
    assert session.abandoned_ids == ["sid-0"]


def test_regenerating_new_session_abandons_nothing():
    session = Session("sid-0", id_factory=_ids())
    session.regenerate()
    assert session.abandoned_ids == []


def test_regenerating_twice_abandons_only_persisted_id():
    session = _loaded()
    session.regenerate()
    session.regenerate()
    assert session.id == "sid-2"
    assert session.abandoned_ids == ["sid-0"]


def test_regenerate_requires_id_factory():
    with pytest.raises(RuntimeError):
        Session("sid-0").regenerate()


def test_regenerate_revives_destroyed_session():
    session = _loaded({"count": 1})
    session.destroy()
    session.regenerate()
    assert not session.is_destroyed


def test_destroy():
    session = _loaded({"count": 1})
    session.destroy()
    assert session.is_destroyed
    assert session.is_changed
    assert len(session) == 0


def test_replace():
    session = _loaded({"count": 1})
    session.replace({"foo": "bar"})
    assert dict(session) == {"foo": "bar"}
    assert session.is_changed


def test_replace_applies_cookie_entry():
    session = _loaded({"count": 1})
    session.replace({"cookie": {"http_only": False}, "foo": "bar"})
    assert dict(session) == {"foo": "bar"}
    assert session.cookie.http_only is False


def test_replace_rejects_malformed_cookie_entry():
    session = _loaded({"count": 1})
    with pytest.raises(ValueError):
        session.replace({"cookie": {"max_age": "soon"}})
    assert dict(session) == {"count": 1}


def test_to_record_embeds_cookie():
    session = Session("sid-0", {"count": 1}, cookie=CookieOptions(path="/app"))
    record = session.to_record()
    assert record["count"] == 1
    assert record["cookie"]["path"] == "/app"


# ── Hydration ─────────────────────────────────────────────────────────────


def test_from_record_restores_fields_and_cookie():
    record = {"cookie": CookieOptions(http_only=False).model_dump(mode="json"), "count": 2}
    session = Session.from_record("sid-0", record, default_cookie=CookieOptions())
    assert dict(session) == {"count": 2}
    assert session.cookie.http_only is False
    assert not session.is_new
    assert not session.is_changed


def test_from_record_without_cookie_uses_default_copy():
    default = CookieOptions(path="/app")
    session = Session.from_record("sid-0", {"count": 2}, default_cookie=default)
    session.cookie.path = "/other"
    assert default.path == "/app"


def test_from_record_with_malformed_cookie():
    with pytest.raises(SessionLoadError):
        Session.from_record("sid-0", {"cookie": {"max_age": "soon"}}, default_cookie=CookieOptions())


def test_from_record_with_non_json_field():
    with pytest.raises(SessionLoadError):
        Session.from_record("sid-0", {"count": {1, 2}}, default_cookie=CookieOptions())


# ── DeferredSession ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_deferred_session_loads_once():
    calls = []

    async def loader():
        calls.append(1)
        return Session("sid-0")

    deferred = DeferredSession(loader)
    assert not deferred.loaded
    assert deferred.session is None

    first = await deferred.load()
    second = await deferred.load()
    assert first is second is deferred.session
    assert deferred.loaded
    assert calls == [1]


@pytest.mark.asyncio
async def test_deferred_session_remembers_none():
    calls = []

    async def loader():
        calls.append(1)
        return None

    deferred = DeferredSession(loader)
    assert await deferred.load() is None
    assert await deferred.load() is None
    assert calls == [1]
