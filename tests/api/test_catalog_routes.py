from __future__ import annotations

from http import HTTPStatus

import pytest
from fastapi.testclient import TestClient

import channel_router.main as app_main
from channel_router.core.config import ChannelType
from channel_router.main import app
from channel_router.storage.catalog import upsert_entry


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(app_main, "init_db", lambda: None)

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def voices(provider_factory):
    vendor = provider_factory("secret-vendor-name", cost_per_unit=3.5)
    upsert_entry(
        "aria",
        ChannelType.SPEECH_SYNTHESIS,
        display_name="Aria",
        description="Warm conversational voice",
        attributes={"gender": "female", "language": "en-US", "quality_tier": "premium"},
        primary_provider_id=vendor.id,
        vendor_refs={vendor.id: "vendor-voice-id"},
    )
    upsert_entry(
        "marcus",
        ChannelType.SPEECH_SYNTHESIS,
        display_name="Marcus",
        attributes={"gender": "male", "language": "en-US", "quality_tier": "standard"},
        primary_provider_id=vendor.id,
    )
    return vendor


def test_list_catalog_hides_provider_details(client, voices):
    response = client.get("/v1/catalog/speech-synthesis")

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert [item["code"] for item in body] == ["aria", "marcus"]
    assert set(body[0]) == {"code", "channel_type", "display_name", "description", "attributes"}
    assert "secret-vendor-name" not in response.text
    assert "vendor-voice-id" not in response.text
    assert "x-request-id" in response.headers


def test_list_catalog_filters(client, voices):
    response = client.get("/v1/catalog/speech-synthesis", params={"gender": "male"})

    assert [item["code"] for item in response.json()] == ["marcus"]


def test_get_catalog_item_and_missing(client, voices):
    found = client.get("/v1/catalog/speech-synthesis/aria")
    missing = client.get("/v1/catalog/speech-synthesis/nobody")
    wrong_channel = client.get("/v1/catalog/fax/aria")

    assert found.json()["display_name"] == "Aria"
    assert missing.status_code == HTTPStatus.NOT_FOUND
    assert wrong_channel.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
