"""Operational event log for site operations worth an operator's attention."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from sqlalchemy import delete, select

from apihub.logging import get_request_id
from apihub.storage.database import session_scope
from apihub.storage.models import SiteEvent

logger = logging.getLogger("apihub.events")

_EVENTS_ENABLED = os.getenv("EVENTS_ENABLED", "true").lower() in {"1", "true", "yes"}

_RETENTION_DAYS = 2  # today + yesterday
_MESSAGE_LIMIT = 512


def _current_retention_cutoff() -> datetime:
    now_utc = datetime.now(timezone.utc)
    start_of_today = datetime(now_utc.year, now_utc.month, now_utc.day, tzinfo=timezone.utc)
    return start_of_today - timedelta(days=_RETENTION_DAYS - 1)


def _prune_old_events(session) -> None:
    session.execute(delete(SiteEvent).where(SiteEvent.ts < _current_retention_cutoff()))


def record_event(
    kind: str,
    level: str,
    *,
    message: str | None = None,
    request_id: str | None = None,
    meta: Dict[str, Any] | None = None,
    **fields: Any,
) -> None:
    """Persist an event; storage failures are logged and never raised."""
    if not _EVENTS_ENABLED:
        return

    event = SiteEvent(
        ts=datetime.now(timezone.utc),
        level=level.upper(),
        kind=kind,
        request_id=request_id or get_request_id(),
        message=message[:_MESSAGE_LIMIT] if message else None,
        site=fields.get("site"),
        variant=fields.get("variant"),
        operation=fields.get("operation"),
        error_code=fields.get("error_code"),
        meta=json.dumps(meta, ensure_ascii=True, default=str) if meta else None,
    )

    try:
        with session_scope() as session:
            session.add(event)
            _prune_old_events(session)
    except Exception:
        logger.exception(
            "Failed to record event", extra={"event": "event_persist_error", "kind": kind}
        )


def list_recent_events(limit: int = 50, kind: str | None = None) -> List[Dict[str, Any]]:
    """Return retained events, newest first, optionally filtered by kind."""
    if not _EVENTS_ENABLED:
        return []

    cutoff = _current_retention_cutoff()

    with session_scope() as session:
        _prune_old_events(session)

        stmt = select(SiteEvent).where(SiteEvent.ts >= cutoff)
        if kind:
            stmt = stmt.where(SiteEvent.kind == kind)
        stmt = stmt.order_by(SiteEvent.ts.desc()).limit(limit)
        rows = session.scalars(stmt).all()

    events: List[Dict[str, Any]] = []
    for row in rows:
        meta_value: Any = None
        if row.meta:
            try:
                meta_value = json.loads(row.meta)
            except json.JSONDecodeError:
                meta_value = row.meta

        events.append(
            {
                "id": row.id,
                "timestamp": row.ts.isoformat() if row.ts else None,
                "level": row.level,
                "kind": row.kind,
                "request_id": row.request_id,
                "site": row.site,
                "variant": row.variant,
                "operation": row.operation,
                "error_code": row.error_code,
                "message": row.message,
                "meta": meta_value,
            }
        )
    return events


__all__ = ["list_recent_events", "record_event"]
