"""Session lifecycle event logging.

Emits one JSON object per lifecycle event to the ``session.events`` logger.
Consumers attach their own handlers (CloudWatch JSON formatter, Firehose,
structlog, etc.). Events are not serialized at all unless the logger is
enabled for INFO.

Usage::

    from generic_session import events
    events.session_event(
        activity=events.Activity.REGENERATED,
        session_id=session.id,
        previous_id=old_id,
        message="Session id regenerated",
    )
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

logger = logging.getLogger("session.events")


class Activity:
    CREATED = "created"
    REGENERATED = "regenerated"
    DESTROYED = "destroyed"
    STORE_UNAVAILABLE = "store_unavailable"
    STORE_ERROR = "store_error"


class Severity:
    INFORMATIONAL = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4


_SEVERITY_NAMES = {
    Severity.INFORMATIONAL: "Informational",
    Severity.LOW: "Low",
    Severity.MEDIUM: "Medium",
    Severity.HIGH: "High",
}

_PRODUCT = {
    "name": "generic-session",
    "version": "0.1.0",
}


def short_id(session_id: str | None) -> str | None:
    """Truncate a session id for logs; full ids are bearer credentials."""
    if not session_id:
        return None
    return session_id[:8]


def emit(event: dict[str, Any]) -> None:
    """Log an event as JSON. Unserializable values fall back to ``str``."""
    if not logger.isEnabledFor(logging.INFO):
        return
    try:
        payload = json.dumps(event, default=str)
    except (TypeError, ValueError):
        logger.warning("Dropped unserializable session event: %r", event.get("activity"))
        return
    logger.info(payload)


def session_event(
    *,
    activity: str,
    session_id: str | None = None,
    previous_id: str | None = None,
    severity_id: int = Severity.INFORMATIONAL,
    path: str | None = None,
    message: str = "",
    extra: dict[str, Any] | None = None,
) -> None:
    """Emit a session lifecycle event."""
    event: dict[str, Any] = {
        "activity": activity,
        "severity_id": severity_id,
        "severity": _SEVERITY_NAMES.get(severity_id, "Unknown"),
        "time": int(time.time() * 1000),
        "metadata": {
            "product": _PRODUCT,
            **(extra or {}),
        },
        "message": message,
    }
    if session_id:
        event["session"] = {"uid": short_id(session_id)}
        if previous_id:
            event["session"]["previous_uid"] = short_id(previous_id)
    if path:
        event["http_request"] = {"url": {"path": path}}
    emit(event)
