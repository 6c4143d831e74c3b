"""Storage helpers for customer-facing catalog entries."""

from __future__ import annotations

from typing import Any, Iterable, cast

from sqlalchemy import select

from channel_router.core.config import ChannelType

from .database import session_scope
from .models import CatalogEntry


def get_entry(code: str, channel_type: ChannelType | None = None) -> CatalogEntry | None:
    """Return the active catalog entry for a code, optionally scoped to a channel."""
    stmt = select(CatalogEntry).where(CatalogEntry.code == code, CatalogEntry.is_active.is_(True))
    if channel_type is not None:
        stmt = stmt.where(CatalogEntry.channel_type == ChannelType(channel_type).value)
    stmt = stmt.order_by(CatalogEntry.id).limit(1)
    with session_scope() as session:
        return session.scalar(stmt)


def _attribute_matches(stored: Any, wanted: Any) -> bool:
    # List-valued attributes, such as recognition languages, match on membership.
    if isinstance(stored, list):
        return wanted in stored
    return stored == wanted


def list_entries(
    channel_type: ChannelType,
    filters: dict[str, Any] | None = None,
) -> list[CatalogEntry]:
    """Return active entries of a channel whose display attributes match ``filters``."""
    stmt = (
        select(CatalogEntry)
        .where(
            CatalogEntry.channel_type == ChannelType(channel_type).value,
            CatalogEntry.is_active.is_(True),
        )
        .order_by(CatalogEntry.display_name, CatalogEntry.code)
    )
    with session_scope() as session:
        rows = cast(list[CatalogEntry], list(session.scalars(stmt).all()))

    wanted = {key: value for key, value in (filters or {}).items() if value is not None}
    if not wanted:
        return rows
    return [
        row
        for row in rows
        if all(
            _attribute_matches((row.attributes or {}).get(key), value)
            for key, value in wanted.items()
        )
    ]


def upsert_entry(
    code: str,
    channel_type: ChannelType,
    *,
    display_name: str,
    primary_provider_id: int | None = None,
    fallback_provider_ids: Iterable[int] = (),
    vendor_refs: dict[int, str] | None = None,
    supported_countries: Iterable[str] = (),
    description: str | None = None,
    attributes: dict[str, Any] | None = None,
    is_active: bool = True,
) -> CatalogEntry:
    """Insert or replace the catalog entry identified by ``(channel_type, code)``."""
    channel = ChannelType(channel_type).value
    values = {
        "display_name": display_name,
        "description": description,
        "attributes": dict(attributes or {}),
        "primary_provider_id": primary_provider_id,
        "fallback_provider_ids": [int(item) for item in fallback_provider_ids],
        # JSON object keys are always strings.
        "vendor_refs": {str(key): value for key, value in (vendor_refs or {}).items()},
        "supported_countries": [country.upper() for country in supported_countries],
        "is_active": is_active,
    }
    with session_scope() as session:
        entry = session.scalar(
            select(CatalogEntry).where(
                CatalogEntry.channel_type == channel, CatalogEntry.code == code
            )
        )
        if entry is None:
            entry = CatalogEntry(code=code, channel_type=channel, **values)
            session.add(entry)
        else:
            for key, value in values.items():
                setattr(entry, key, value)
        session.flush()
        session.refresh(entry)
        return entry


__all__ = ["get_entry", "list_entries", "upsert_entry"]
