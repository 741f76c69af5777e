"""Health and operational event endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from apihub.telemetry.events import list_recent_events

router = APIRouter(prefix="/api", tags=["admin"])


@router.get("/health")
def health() -> dict:
    return {"success": True, "data": {"status": "ok"}}


@router.get("/events")
def list_events(limit: int = 25, kind: str | None = None) -> dict:
    """Return recent site events for the dashboard's activity panel."""
    limit_value = max(1, min(limit, 100))
    return {"success": True, "data": list_recent_events(limit=limit_value, kind=kind)}
