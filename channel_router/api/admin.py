"""Admin endpoints for provider, credential and catalog management."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from channel_router.core.config import ChannelType
from channel_router.router.channel_router import get_router
from channel_router.storage.catalog import upsert_entry
from channel_router.storage.models import Provider
from channel_router.storage.providers import (
    create_provider,
    get_provider,
    list_providers,
    reset_health,
    set_active,
    set_credential,
    soft_delete_provider,
)
from channel_router.storage.usage_log import list_usage
from channel_router.telemetry.events import list_recent_events, record_event

logger = logging.getLogger("channel_router.admin")

router = APIRouter(prefix="/admin")


class ProviderCreate(BaseModel):
    name: str
    channel_type: ChannelType
    tenant_id: int | None = None
    cost_per_unit: float = Field(default=0.0, ge=0)
    priority: int = 50
    is_active: bool = True


class CatalogEntryUpsert(BaseModel):
    display_name: str
    description: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    primary_provider_id: int | None = None
    fallback_provider_ids: list[int] = Field(default_factory=list)
    vendor_refs: dict[int, str] = Field(default_factory=dict)
    supported_countries: list[str] = Field(default_factory=list)
    is_active: bool = True


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _provider_payload(provider: Provider) -> dict[str, Any]:
    return {
        "id": provider.id,
        "name": provider.name,
        "channel_type": provider.channel_type,
        "tenant_id": provider.tenant_id,
        "is_active": provider.is_active,
        "health_score": provider.health_score,
        "cost_per_unit": provider.cost_per_unit,
        "priority": provider.priority,
        "has_credentials": bool(provider.credentials_encrypted),
        "total_requests": provider.total_requests,
        "failed_requests": provider.failed_requests,
        "last_success_at": _iso(provider.last_success_at),
        "last_failure_at": _iso(provider.last_failure_at),
    }


def _require_provider(provider_id: int) -> Provider:
    provider = get_provider(provider_id)
    if provider is None or provider.deleted_at is not None:
        raise HTTPException(status_code=404, detail="Provider not found")
    return provider


@router.get("/providers")
def admin_list_providers(channel_type: ChannelType | None = None) -> dict:
    return {"providers": [_provider_payload(item) for item in list_providers(channel_type)]}


@router.post("/providers", status_code=201)
def admin_create_provider(payload: ProviderCreate) -> dict:
    provider = create_provider(
        payload.name,
        payload.channel_type,
        tenant_id=payload.tenant_id,
        cost_per_unit=payload.cost_per_unit,
        priority=payload.priority,
        is_active=payload.is_active,
    )
    return _provider_payload(provider)


@router.post("/providers/{provider_id}/credentials")
def admin_set_credentials(provider_id: int, credentials: dict[str, Any]) -> dict:
    _require_provider(provider_id)
    if not credentials:
        raise HTTPException(status_code=400, detail="Missing credentials")

    channel_router = get_router()
    ciphertext, iv = channel_router.credentials.cipher.encrypt(credentials)
    set_credential(provider_id, ciphertext, iv)
    channel_router.credentials.invalidate(provider_id)
    record_event(
        "provider_credentials_updated",
        "INFO",
        provider_from=provider_id,
        message="Credentials encrypted and stored via admin",
        meta={"source": "admin_credentials", "fields": sorted(credentials)},
    )
    return {"status": "ok"}


@router.post("/providers/{provider_id}/health/reset")
def admin_reset_health(provider_id: int) -> dict:
    provider = _require_provider(provider_id)
    reset_health(provider_id)
    record_event(
        "provider_health_reset",
        "INFO",
        channel_type=provider.channel_type,
        provider_from=provider_id,
        message=f"Health reset from {provider.health_score}",
        meta={"source": "admin"},
    )
    return {"status": "ok"}


@router.post("/providers/{provider_id}/activate")
def admin_activate(provider_id: int) -> dict:
    _require_provider(provider_id)
    set_active(provider_id, True)
    return {"status": "ok"}


@router.post("/providers/{provider_id}/deactivate")
def admin_deactivate(provider_id: int) -> dict:
    _require_provider(provider_id)
    set_active(provider_id, False)
    get_router().credentials.invalidate(provider_id)
    return {"status": "ok"}


@router.delete("/providers/{provider_id}")
def admin_delete_provider(provider_id: int) -> dict:
    if not soft_delete_provider(provider_id):
        raise HTTPException(status_code=404, detail="Provider not found")
    get_router().credentials.invalidate(provider_id)
    logger.info(
        "Provider soft-deleted",
        extra={"event": "provider_deleted", "provider_id": provider_id},
    )
    return {"status": "ok"}


@router.put("/catalog/{channel_type}/{code}")
def admin_upsert_catalog_entry(
    channel_type: ChannelType,
    code: str,
    payload: CatalogEntryUpsert,
) -> dict:
    entry = upsert_entry(
        code,
        channel_type,
        display_name=payload.display_name,
        description=payload.description,
        attributes=payload.attributes,
        primary_provider_id=payload.primary_provider_id,
        fallback_provider_ids=payload.fallback_provider_ids,
        vendor_refs=payload.vendor_refs,
        supported_countries=payload.supported_countries,
        is_active=payload.is_active,
    )
    return {
        "code": entry.code,
        "channel_type": entry.channel_type,
        "primary_provider_id": entry.primary_provider_id,
        "fallback_provider_ids": entry.fallback_provider_ids,
    }


@router.get("/events")
def admin_list_events(limit: int = 25, kind: str | None = None) -> dict:
    limit_value = max(1, min(limit, 100))
    return {"events": list_recent_events(limit=limit_value, kind=kind)}


@router.get("/usage")
def admin_list_usage(
    provider_id: int | None = None,
    request_id: str | None = None,
    limit: int = 100,
) -> dict:
    limit_value = max(1, min(limit, 500))
    records = list_usage(provider_id=provider_id, request_id=request_id, limit=limit_value)
    return {"usage": [record.model_dump(mode="json") for record in records]}
