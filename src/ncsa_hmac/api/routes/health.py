"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter()

__all__ = ["router"]


@router.get("/health", summary="Liveness probe", operation_id="health")
async def health() -> dict[str, str]:
    """Liveness: app process is running."""
    return {"status": "ok"}
