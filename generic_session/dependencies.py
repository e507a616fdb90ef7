"""FastAPI dependency injection: session access and lifecycle helpers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from .session import DeferredSession, Session


async def get_session(request: Request) -> Session | None:
    """Get the session from request state, loading it if deferred.

    Returns None when the path has no session or the store is unavailable.
    """
    session = getattr(request.state, "session", None)
    if isinstance(session, DeferredSession):
        return await session.load()
    return session


async def require_session(request: Request) -> Session:
    """Like get_session, but a missing session is a 503."""
    session = await get_session(request)
    if session is None:
        raise HTTPException(
            status_code=503,
            detail={"error": "Session unavailable"},
        )
    return session


async def destroy_session(request: Request) -> None:
    """Mark the session for destruction."""
    session = await get_session(request)
    if session is not None:
        session.destroy()


async def regenerate_session(request: Request, keep_data: bool = False) -> str | None:
    """Move the session to a fresh id; returns the new id."""
    session = await get_session(request)
    if session is None:
        return None
    return session.regenerate(keep_data=keep_data)
