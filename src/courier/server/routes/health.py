"""Health check routes."""

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Health check endpoint.

    Reports whether the scheduling engine has restored its state.
    """
    engine = request.app.state.engine
    return {
        "status": "healthy",
        "engine": "started" if engine.started else "stopped",
    }
