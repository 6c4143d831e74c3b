"""Per-attempt usage log storage helpers."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import select

from .database import session_scope
from .models import ProviderUsageLog

logger = logging.getLogger("channel_router.usage_log")


class UsageRecord(BaseModel):
    """One provider attempt, successful or not."""

    request_id: str
    provider_id: int
    tenant_id: int | None = None
    channel_type: str
    success: bool
    latency_ms: float
    cost: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _encode(payload: dict[str, Any]) -> str | None:
    if not payload:
        return None
    try:
        return json.dumps(payload, ensure_ascii=True, default=str)
    except (TypeError, ValueError):
        logger.debug("Unable to encode usage metadata", exc_info=True)
        return None


def _decode(serialized: str | None) -> dict[str, Any]:
    if not serialized:
        return {}
    try:
        decoded = json.loads(serialized)
    except json.JSONDecodeError:
        return {"raw": serialized}
    return decoded if isinstance(decoded, dict) else {"raw": decoded}


def record_usage(record: UsageRecord) -> None:
    """Persist a usage record; failures are logged and never propagate."""
    entry = ProviderUsageLog(
        request_id=record.request_id,
        provider_id=record.provider_id,
        tenant_id=record.tenant_id,
        channel_type=record.channel_type,
        success=record.success,
        latency_ms=record.latency_ms,
        cost=record.cost,
        meta=_encode(record.metadata),
        created_at=record.timestamp,
    )
    try:
        with session_scope() as session:
            session.add(entry)
    except Exception:
        logger.exception(
            "Failed to persist usage record",
            extra={
                "event": "usage_persist_error",
                "provider_id": record.provider_id,
                "usage_request_id": record.request_id,
            },
        )


def list_usage(
    *,
    provider_id: int | None = None,
    request_id: str | None = None,
    limit: int = 100,
) -> list[UsageRecord]:
    """Return recent usage records, newest first."""
    stmt = select(ProviderUsageLog)
    if provider_id is not None:
        stmt = stmt.where(ProviderUsageLog.provider_id == provider_id)
    if request_id is not None:
        stmt = stmt.where(ProviderUsageLog.request_id == request_id)
    stmt = stmt.order_by(ProviderUsageLog.created_at.desc(), ProviderUsageLog.id.desc()).limit(limit)

    with session_scope() as session:
        rows = session.scalars(stmt).all()

    return [
        UsageRecord(
            request_id=row.request_id,
            provider_id=row.provider_id,
            tenant_id=row.tenant_id,
            channel_type=row.channel_type,
            success=row.success,
            latency_ms=row.latency_ms,
            cost=row.cost,
            metadata=_decode(row.meta),
            timestamp=row.created_at,
        )
        for row in rows
    ]


__all__ = ["UsageRecord", "list_usage", "record_usage"]
