from __future__ import annotations

from contextlib import contextmanager

from channel_router.storage import usage_log
from channel_router.storage.usage_log import UsageRecord


def _record(**overrides) -> UsageRecord:
    values = {
        "request_id": "req-1",
        "provider_id": 1,
        "tenant_id": 3,
        "channel_type": "short-message",
        "success": True,
        "latency_ms": 12.5,
        "cost": 0.0075,
        "metadata": {"segments": 2},
    }
    values.update(overrides)
    return UsageRecord(**values)


def test_record_and_list_usage():
    usage_log.record_usage(_record())
    usage_log.record_usage(_record(request_id="req-2", provider_id=2, success=False))

    by_provider = usage_log.list_usage(provider_id=1)
    by_request = usage_log.list_usage(request_id="req-2")

    assert len(by_provider) == 1
    assert by_provider[0].metadata == {"segments": 2}
    assert by_provider[0].cost == 0.0075
    assert [item.success for item in by_request] == [False]


def test_record_usage_never_raises(monkeypatch, caplog):
    @contextmanager
    def broken_scope():
        raise RuntimeError("database down")
        yield  # pragma: no cover

    monkeypatch.setattr(usage_log, "session_scope", broken_scope)

    usage_log.record_usage(_record())

    assert "Failed to persist usage record" in caplog.text
