"""Storage helpers for the provider registry.

Every call opens its own session; nothing here is cached. Health adjustments
are applied as a single clamped UPDATE so concurrent outcomes for the same
provider never push the score outside ``[0, 100]``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import cast

from sqlalchemy import case, or_, select, update

from channel_router.core.config import ChannelType

from .database import session_scope
from .models import (
    DEFAULT_HEALTH_SCORE,
    DEFAULT_PRIORITY,
    MAX_HEALTH_SCORE,
    MIN_HEALTH_SCORE,
    Provider,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _selectable():
    return (Provider.is_active.is_(True), Provider.deleted_at.is_(None))


def list_candidates(channel_type: ChannelType, tenant_id: int | None = None) -> list[Provider]:
    """Return active providers of a channel visible to the tenant, tenant-private first."""
    channel = ChannelType(channel_type)
    ordering = [
        Provider.health_score.desc(),
        Provider.cost_per_unit.asc(),
        Provider.priority.asc(),
        Provider.id.asc(),
    ]
    if tenant_id is None:
        visibility = Provider.tenant_id.is_(None)
    else:
        visibility = or_(Provider.tenant_id == tenant_id, Provider.tenant_id.is_(None))
        ordering.insert(0, case((Provider.tenant_id == tenant_id, 0), else_=1))

    stmt = (
        select(Provider)
        .where(Provider.channel_type == channel.value, visibility, *_selectable())
        .order_by(*ordering)
    )
    with session_scope() as session:
        rows = session.scalars(stmt).all()
        return cast(list[Provider], list(rows))


def get_encrypted_credential(provider_id: int) -> tuple[str, str] | None:
    """Return ``(ciphertext, iv)`` for a non-deleted provider, or ``None``."""
    stmt = select(Provider.credentials_encrypted, Provider.credentials_iv).where(
        Provider.id == provider_id, Provider.deleted_at.is_(None)
    )
    with session_scope() as session:
        row = session.execute(stmt).first()
    if row is None or not row.credentials_encrypted or not row.credentials_iv:
        return None
    return cast(str, row.credentials_encrypted), cast(str, row.credentials_iv)


def record_outcome(provider_id: int, success: bool, *, delta: int) -> int | None:
    """Apply a clamped health adjustment and bump request counters.

    Returns the stored health score after the update, or ``None`` when the
    provider does not exist.
    """
    adjusted = Provider.health_score + delta
    clamped = case(
        (adjusted > MAX_HEALTH_SCORE, MAX_HEALTH_SCORE),
        (adjusted < MIN_HEALTH_SCORE, MIN_HEALTH_SCORE),
        else_=adjusted,
    )
    now = _now()
    values = {
        "health_score": clamped,
        "total_requests": Provider.total_requests + 1,
        "last_used_at": now,
        "updated_at": now,
    }
    if success:
        values["last_success_at"] = now
    else:
        values["failed_requests"] = Provider.failed_requests + 1
        values["last_failure_at"] = now

    with session_scope() as session:
        result = session.execute(
            update(Provider)
            .where(Provider.id == provider_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return None
        score = session.scalar(select(Provider.health_score).where(Provider.id == provider_id))
        return cast(int | None, score)


def create_provider(
    name: str,
    channel_type: ChannelType,
    *,
    tenant_id: int | None = None,
    cost_per_unit: float = 0.0,
    priority: int = DEFAULT_PRIORITY,
    health_score: int = DEFAULT_HEALTH_SCORE,
    is_active: bool = True,
) -> Provider:
    """Register a provider row and return it."""
    provider = Provider(
        name=name,
        channel_type=ChannelType(channel_type).value,
        tenant_id=tenant_id,
        cost_per_unit=cost_per_unit,
        priority=priority,
        health_score=max(MIN_HEALTH_SCORE, min(MAX_HEALTH_SCORE, health_score)),
        is_active=is_active,
        total_requests=0,
        failed_requests=0,
    )
    with session_scope() as session:
        session.add(provider)
        session.flush()
        session.refresh(provider)
        return provider


def get_provider(provider_id: int) -> Provider | None:
    """Return the provider row, including inactive and soft-deleted ones."""
    with session_scope() as session:
        return session.get(Provider, provider_id)


def list_providers(channel_type: ChannelType | None = None) -> list[Provider]:
    """Return all non-deleted providers, optionally for a single channel."""
    stmt = select(Provider).where(Provider.deleted_at.is_(None))
    if channel_type is not None:
        stmt = stmt.where(Provider.channel_type == ChannelType(channel_type).value)
    stmt = stmt.order_by(Provider.channel_type, Provider.priority, Provider.id)
    with session_scope() as session:
        return cast(list[Provider], list(session.scalars(stmt).all()))


def _update(provider_id: int, **values) -> bool:
    with session_scope() as session:
        result = session.execute(
            update(Provider)
            .where(Provider.id == provider_id, Provider.deleted_at.is_(None))
            .values(updated_at=_now(), **values)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)


def set_credential(provider_id: int, ciphertext: str, iv: str) -> bool:
    """Store an encrypted credential blob for the provider."""
    return _update(provider_id, credentials_encrypted=ciphertext, credentials_iv=iv)


def set_active(provider_id: int, active: bool) -> bool:
    """Enable or disable a provider for selection."""
    return _update(provider_id, is_active=active)


def reset_health(provider_id: int, score: int = DEFAULT_HEALTH_SCORE) -> bool:
    """Restore a provider's health score, typically after an outage is resolved."""
    return _update(
        provider_id, health_score=max(MIN_HEALTH_SCORE, min(MAX_HEALTH_SCORE, score))
    )


def soft_delete_provider(provider_id: int) -> bool:
    """Mark a provider deleted; it is never selectable afterwards."""
    return _update(provider_id, deleted_at=_now(), is_active=False)


__all__ = [
    "create_provider",
    "get_encrypted_credential",
    "get_provider",
    "list_candidates",
    "list_providers",
    "record_outcome",
    "reset_health",
    "set_active",
    "set_credential",
    "soft_delete_provider",
]
