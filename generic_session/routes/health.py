"""GET /health: liveness and session store readiness."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    backend = request.app.state.session_backend
    store_health = getattr(backend, "health", None)
    ready = store_health is None or store_health.is_ready()
    return {
        "status": "ok",
        "backend": type(backend).__name__,
        "store": "ready" if ready else "unavailable",
    }
