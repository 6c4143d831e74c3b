from __future__ import annotations

import pytest

from channel_router.core.config import ChannelType, load_settings


@pytest.fixture
def default_settings(monkeypatch):
    monkeypatch.delenv("CHANNEL_ROUTER_CONFIG", raising=False)
    load_settings.cache_clear()
    yield load_settings()
    load_settings.cache_clear()


def test_shipped_config_keeps_default_health_policy(default_settings):
    assert default_settings.admission_threshold == 30
    assert default_settings.credential_cache_ttl_seconds == 300
    for channel in ChannelType:
        policy = default_settings.health_policy(channel)
        assert (policy.success_increment, policy.failure_decrement) == (1, 10)


def test_missing_config_file_falls_back_to_defaults(tmp_path):
    settings = load_settings.__wrapped__(tmp_path / "absent.yaml")

    assert settings.health_policy(ChannelType.VOICE_CARRIER).failure_decrement == 10
    assert settings.credential_cache_max_entries is None
