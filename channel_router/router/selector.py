"""Least-cost provider selection.

A catalog code resolves to a channel and an optional provider chain. Eligible
providers are filtered by the admission threshold and ranked by, in order:
tenant-private before shared, health descending, cost ascending, priority
ascending. Health outranks cost so a clearly healthier provider wins even
when it is pricier.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from channel_router.core.config import ChannelType, RouterSettings
from channel_router.core.exceptions import CatalogEntryNotFoundError, SelectionError
from channel_router.storage import catalog as catalog_store
from channel_router.storage import providers as provider_store
from channel_router.storage.models import CatalogEntry, Provider

logger = logging.getLogger("channel_router.selector")

DEFAULT_COUNTRY = "US"
_COUNTRY_PREFIXES: tuple[tuple[str, str], ...] = (
    ("44", "GB"),
    ("61", "AU"),
    ("33", "FR"),
    ("49", "DE"),
    ("81", "JP"),
    ("86", "CN"),
    ("91", "IN"),
)


@dataclass(frozen=True)
class Candidate:
    """A provider offered for one request. Never exposed to customers."""

    provider_id: int
    name: str
    channel_type: ChannelType
    tenant_id: int | None
    health_score: int
    cost_per_unit: float
    priority: int
    vendor_ref: str | None = None

    @classmethod
    def from_provider(cls, provider: Provider, vendor_ref: str | None = None) -> "Candidate":
        return cls(
            provider_id=provider.id,
            name=provider.name,
            channel_type=ChannelType(provider.channel_type),
            tenant_id=provider.tenant_id,
            health_score=provider.health_score,
            cost_per_unit=provider.cost_per_unit,
            priority=provider.priority,
            vendor_ref=vendor_ref,
        )


@dataclass(frozen=True)
class Selection:
    channel_type: ChannelType
    tenant_id: int | None
    primary: Candidate
    fallbacks: tuple[Candidate, ...] = field(default_factory=tuple)
    code: str | None = None

    @property
    def candidates(self) -> list[Candidate]:
        return [self.primary, *self.fallbacks]


def extract_country_code(phone_number: str) -> str:
    """Derive an ISO country code from a dialled number."""
    digits = re.sub(r"\D", "", phone_number)
    if digits.startswith("1") and len(digits) == 11:
        return "US"
    for prefix, country in _COUNTRY_PREFIXES:
        if digits.startswith(prefix):
            return country
    return DEFAULT_COUNTRY


def _rank_key(candidate: Candidate, tenant_id: int | None) -> tuple:
    is_private = tenant_id is not None and candidate.tenant_id == tenant_id
    return (
        0 if is_private else 1,
        -candidate.health_score,
        candidate.cost_per_unit,
        candidate.priority,
        candidate.provider_id,
    )


def rank_candidates(
    candidates: Iterable[Candidate],
    tenant_id: int | None,
    threshold: int,
) -> list[Candidate]:
    """Drop candidates below the admission threshold and order the rest."""
    admitted = [candidate for candidate in candidates if candidate.health_score >= threshold]
    return sorted(admitted, key=lambda candidate: _rank_key(candidate, tenant_id))


def _chain(entry: CatalogEntry) -> list[int]:
    chain = [entry.primary_provider_id] if entry.primary_provider_id is not None else []
    chain.extend(int(item) for item in entry.fallback_provider_ids or [])
    return chain


class ProviderSelector:
    """Turn catalog codes into ranked candidate lists."""

    def __init__(self, settings: RouterSettings) -> None:
        self._settings = settings

    @property
    def admission_threshold(self) -> int:
        return self._settings.admission_threshold

    def select(
        self,
        code: str,
        tenant_id: int | None = None,
        channel_type: ChannelType | None = None,
    ) -> Selection:
        """Resolve a catalog code into a primary provider and fallback chain."""
        entry = catalog_store.get_entry(code, channel_type)
        if entry is None:
            raise CatalogEntryNotFoundError(code, channel_type)

        channel = ChannelType(entry.channel_type)
        chain = _chain(entry)
        vendor_refs = {int(key): value for key, value in (entry.vendor_refs or {}).items()}
        return self._select(
            channel,
            tenant_id,
            allowed=set(chain) if chain else None,
            vendor_refs=vendor_refs,
            code=entry.code,
        )

    def select_for_channel(
        self,
        channel_type: ChannelType,
        tenant_id: int | None = None,
    ) -> Selection:
        """Select among every eligible provider of a channel, without a catalog code."""
        return self._select(ChannelType(channel_type), tenant_id)

    def select_carrier(self, destination_number: str, tenant_id: int | None = None) -> Selection:
        """Select a voice carrier able to reach the destination's country."""
        country = extract_country_code(destination_number)
        entries = [
            entry
            for entry in catalog_store.list_entries(ChannelType.VOICE_CARRIER)
            if not entry.supported_countries or country in entry.supported_countries
        ]
        if not entries:
            raise SelectionError(
                ChannelType.VOICE_CARRIER,
                tenant_id,
                message=f"No carrier available for {country}",
            )

        allowed: set[int] = set()
        vendor_refs: dict[int, str] = {}
        for entry in entries:
            allowed.update(_chain(entry))
            for key, value in (entry.vendor_refs or {}).items():
                vendor_refs.setdefault(int(key), value)

        return self._select(
            ChannelType.VOICE_CARRIER,
            tenant_id,
            allowed=allowed or None,
            vendor_refs=vendor_refs,
        )

    def _select(
        self,
        channel: ChannelType,
        tenant_id: int | None,
        *,
        allowed: set[int] | None = None,
        vendor_refs: dict[int, str] | None = None,
        code: str | None = None,
    ) -> Selection:
        refs = vendor_refs or {}
        rows: Sequence[Provider] = provider_store.list_candidates(channel, tenant_id)
        candidates = [
            Candidate.from_provider(row, refs.get(row.id))
            for row in rows
            if row.is_active
            and row.deleted_at is None
            # Tenant-private providers override the catalog chain.
            and (allowed is None or row.id in allowed or row.tenant_id is not None)
        ]
        ranked = rank_candidates(candidates, tenant_id, self.admission_threshold)
        if not ranked:
            logger.warning(
                "No provider available",
                extra={
                    "event": "selection_empty",
                    "channel_type": channel.value,
                    "tenant_id": tenant_id,
                    "catalog_code": code,
                    "considered": len(candidates),
                },
            )
            raise SelectionError(channel, tenant_id)

        logger.info(
            "Provider selected",
            extra={
                "event": "provider_selected",
                "channel_type": channel.value,
                "tenant_id": tenant_id,
                "catalog_code": code,
                "provider_id": ranked[0].provider_id,
                "fallback_count": len(ranked) - 1,
            },
        )
        return Selection(
            channel_type=channel,
            tenant_id=tenant_id,
            primary=ranked[0],
            fallbacks=tuple(ranked[1:]),
            code=code,
        )


__all__ = [
    "Candidate",
    "ProviderSelector",
    "Selection",
    "extract_country_code",
    "rank_candidates",
]
