from __future__ import annotations

from channel_router.core.config import ChannelType
from channel_router.storage import catalog


def test_upsert_entry_inserts_then_updates(provider_factory):
    first = provider_factory("first")
    second = provider_factory("second")

    created = catalog.upsert_entry(
        "aria",
        ChannelType.SPEECH_SYNTHESIS,
        display_name="Aria",
        primary_provider_id=first.id,
        vendor_refs={first.id: "voice-123"},
    )
    updated = catalog.upsert_entry(
        "aria",
        ChannelType.SPEECH_SYNTHESIS,
        display_name="Aria v2",
        primary_provider_id=first.id,
        fallback_provider_ids=[second.id],
    )

    assert updated.id == created.id
    assert created.vendor_refs == {str(first.id): "voice-123"}
    entry = catalog.get_entry("aria")
    assert entry.display_name == "Aria v2"
    assert entry.fallback_provider_ids == [second.id]


def test_get_entry_skips_inactive_and_other_channels():
    catalog.upsert_entry("aria", ChannelType.SPEECH_SYNTHESIS, display_name="Aria", is_active=False)
    catalog.upsert_entry("nova", ChannelType.SPEECH_RECOGNITION, display_name="Nova")

    assert catalog.get_entry("aria") is None
    assert catalog.get_entry("nova", ChannelType.SPEECH_SYNTHESIS) is None
    assert catalog.get_entry("nova", ChannelType.SPEECH_RECOGNITION) is not None


def test_list_entries_applies_attribute_filters():
    catalog.upsert_entry(
        "aria",
        ChannelType.SPEECH_SYNTHESIS,
        display_name="Aria",
        attributes={"gender": "female", "language": "en-US"},
    )
    catalog.upsert_entry(
        "marcus",
        ChannelType.SPEECH_SYNTHESIS,
        display_name="Marcus",
        attributes={"gender": "male", "language": "en-US"},
    )

    all_codes = [entry.code for entry in catalog.list_entries(ChannelType.SPEECH_SYNTHESIS)]
    female = catalog.list_entries(
        ChannelType.SPEECH_SYNTHESIS, {"gender": "female", "language": None}
    )

    assert all_codes == ["aria", "marcus"]
    assert [entry.code for entry in female] == ["aria"]


def test_list_entries_matches_list_valued_attributes():
    catalog.upsert_entry(
        "nova-2",
        ChannelType.SPEECH_RECOGNITION,
        display_name="Nova 2",
        attributes={"language": ["en-US", "es-ES"], "quality_tier": "premium"},
    )
    catalog.upsert_entry(
        "base",
        ChannelType.SPEECH_RECOGNITION,
        display_name="Base",
        attributes={"language": ["en-US"], "quality_tier": "standard"},
    )

    spanish = catalog.list_entries(ChannelType.SPEECH_RECOGNITION, {"language": "es-ES"})
    english = catalog.list_entries(ChannelType.SPEECH_RECOGNITION, {"language": "en-US"})
    french = catalog.list_entries(ChannelType.SPEECH_RECOGNITION, {"language": "fr-FR"})

    assert [entry.code for entry in spanish] == ["nova-2"]
    assert [entry.code for entry in english] == ["base", "nova-2"]
    assert french == []
