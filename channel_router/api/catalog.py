"""Customer-facing catalog routes.

Responses carry catalog codes and display metadata only; provider identity,
cost and health never leave the service.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from channel_router.core.config import ChannelType
from channel_router.storage.catalog import get_entry, list_entries
from channel_router.storage.models import CatalogEntry

router = APIRouter(prefix="/v1/catalog")


class CatalogItem(BaseModel):
    code: str
    channel_type: ChannelType
    display_name: str
    description: str | None = None
    attributes: dict[str, Any] = {}


def _to_item(entry: CatalogEntry) -> CatalogItem:
    return CatalogItem(
        code=entry.code,
        channel_type=ChannelType(entry.channel_type),
        display_name=entry.display_name,
        description=entry.description,
        attributes=dict(entry.attributes or {}),
    )


@router.get("/{channel_type}", response_model=list[CatalogItem])
def list_catalog(
    channel_type: ChannelType,
    language: Optional[str] = None,
    gender: Optional[str] = None,
    quality_tier: Optional[str] = None,
) -> list[CatalogItem]:
    filters = {"language": language, "gender": gender, "quality_tier": quality_tier}
    return [_to_item(entry) for entry in list_entries(channel_type, filters)]


@router.get("/{channel_type}/{code}", response_model=CatalogItem)
def get_catalog_item(channel_type: ChannelType, code: str) -> CatalogItem:
    entry = get_entry(code, channel_type)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Catalog entry '{code}' not found")
    return _to_item(entry)
