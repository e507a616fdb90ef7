"""Session demo endpoints under /session: a per-client visit counter."""

import logging

from fastapi import APIRouter, Depends, Request

from ..dependencies import destroy_session, get_session, regenerate_session, require_session
from ..session import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session")


def _bump(session: Session) -> int:
    session["count"] = session.get("count", 0) + 1
    return session["count"]


@router.get("")
async def has_session(session: Session | None = Depends(get_session)):
    return {"session": session is not None}


@router.get("/get")
async def get_count(session: Session = Depends(require_session)):
    return {"count": _bump(session)}


@router.get("/nothing")
async def read_count(session: Session = Depends(require_session)):
    return {"count": session.get("count")}


@router.get("/remove")
async def remove(request: Request):
    await destroy_session(request)
    return {"count": 0}


@router.get("/drop")
async def drop(request: Request):
    """Remove the session by assigning None to request state."""
    request.state.session = None
    return {"count": 0}


@router.get("/httponly")
async def toggle_http_only(session: Session = Depends(require_session)):
    session.cookie.http_only = not session.cookie.http_only
    return {"http_only": session.cookie.http_only}


@router.get("/regenerate")
async def regenerate(request: Request):
    return {"session_id": await regenerate_session(request)}


@router.get("/regenerate_with_data")
async def regenerate_with_data(request: Request, session: Session = Depends(require_session)):
    session["foo"] = "bar"
    await regenerate_session(request)
    return {"foo": session.get("foo"), "has_session": True}


@router.get("/keep_and_regenerate")
async def keep_and_regenerate(request: Request, session: Session = Depends(require_session)):
    previous = session.id
    await regenerate_session(request, keep_data=True)
    return {"previous_id": previous, "session_id": session.id, "count": session.get("count")}


@router.get("/id")
async def session_id(session: Session = Depends(require_session)):
    return {"session_id": session.id}


@router.get("/get_error")
async def get_count_then_fail(session: Session = Depends(require_session)):
    count = _bump(session)
    logger.info("Raising after count=%d", count)
    raise RuntimeError("handler failed after touching the session")


@router.get("/rewrite")
async def rewrite(request: Request, session: Session = Depends(require_session)):
    request.state.session = {"foo": "bar"}
    return {"foo": "bar"}
