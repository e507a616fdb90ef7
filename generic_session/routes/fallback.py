"""Catch-all route reporting whether the request carries a session."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/{path:path}")
async def other(path: str, request: Request):
    # A deferred session counts as present without being loaded
    has_session = getattr(request.state, "session", None) is not None
    return {"path": "/" + path, "session": has_session}
