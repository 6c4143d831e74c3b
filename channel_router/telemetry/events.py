"""Routing telemetry events: failovers, breaker trips and admin actions."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select

from channel_router.logging import get_request_id
from channel_router.storage.database import session_scope
from channel_router.storage.models import RouterEvent

logger = logging.getLogger("channel_router.events")

_EVENTS_ENABLED = os.getenv("EVENTS_ENABLED", "true").lower() in {"1", "true", "yes"}


_RETENTION_DAYS = 2  # keep today + yesterday


def _current_retention_cutoff() -> datetime:
    """Return the UTC timestamp cutoff for events to retain."""
    now_utc = datetime.now(timezone.utc)
    start_of_today = datetime(now_utc.year, now_utc.month, now_utc.day, tzinfo=timezone.utc)
    return start_of_today - timedelta(days=_RETENTION_DAYS - 1)


def _prune_old_events(session) -> None:
    session.execute(delete(RouterEvent).where(RouterEvent.ts < _current_retention_cutoff()))


def record_event(
    kind: str,
    level: str,
    *,
    message: str | None = None,
    request_id: str | None = None,
    channel_type: str | None = None,
    provider_from: int | None = None,
    provider_to: int | None = None,
    meta: Dict[str, Any] | None = None,
) -> None:
    """Persist a high-value routing event; storage failures are only logged."""
    if not _EVENTS_ENABLED:
        return

    event = RouterEvent(
        ts=datetime.now(timezone.utc),
        level=level.upper(),
        kind=kind,
        request_id=request_id or get_request_id(),
        channel_type=getattr(channel_type, "value", channel_type),
        provider_from=provider_from,
        provider_to=provider_to,
        message=message[:512] if message else None,
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
    """Return recent events ordered newest first."""
    if not _EVENTS_ENABLED:
        return []

    cutoff = _current_retention_cutoff()

    with session_scope() as session:
        _prune_old_events(session)

        stmt = select(RouterEvent).where(RouterEvent.ts >= cutoff)
        if kind:
            stmt = stmt.where(RouterEvent.kind == kind)
        stmt = stmt.order_by(RouterEvent.ts.desc()).limit(limit)
        rows = session.scalars(stmt).all()

    events: List[Dict[str, Any]] = []
    for row in rows:
        meta_value: Optional[Dict[str, Any] | str]
        if row.meta:
            try:
                meta_value = json.loads(row.meta)
            except json.JSONDecodeError:
                meta_value = row.meta
        else:
            meta_value = None

        events.append(
            {
                "id": row.id,
                "timestamp": row.ts.isoformat() if row.ts else None,
                "level": row.level,
                "kind": row.kind,
                "request_id": row.request_id,
                "channel_type": row.channel_type,
                "provider_from": row.provider_from,
                "provider_to": row.provider_to,
                "message": row.message,
                "meta": meta_value,
            }
        )
    return events


__all__ = ["list_recent_events", "record_event"]
