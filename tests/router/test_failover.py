from __future__ import annotations

import pytest

from channel_router.core.config import ChannelType, RouterSettings
from channel_router.core.exceptions import ExecutionError, SelectionError
from channel_router.router import failover
from channel_router.router.failover import FailoverExecutor, RequestContext
from channel_router.router.health import HealthFeedback
from channel_router.router.selector import Candidate
from channel_router.storage import providers
from channel_router.storage.usage_log import UsageRecord


class VendorError(Exception):
    pass


@pytest.fixture
def usage() -> list[UsageRecord]:
    return []


@pytest.fixture
def events(monkeypatch) -> list[tuple[str, str, dict]]:
    captured: list[tuple[str, str, dict]] = []

    def capture_event(kind: str, level: str, **fields) -> None:
        captured.append((kind, level, fields))

    monkeypatch.setattr(failover, "record_event", capture_event)
    return captured


@pytest.fixture
def executor(usage) -> FailoverExecutor:
    return FailoverExecutor(HealthFeedback(RouterSettings()), usage_sink=usage.append)


@pytest.fixture
def candidates(provider_factory) -> list[Candidate]:
    rows = [
        provider_factory(f"vendor-{index}", ChannelType.SHORT_MESSAGE, health_score=80, cost_per_unit=0.01)
        for index in range(3)
    ]
    return [Candidate.from_provider(row) for row in rows]


@pytest.mark.asyncio
async def test_all_candidates_failing_raises_single_execution_error(executor, candidates, usage, events):
    calls: list[int] = []

    async def operation(candidate: Candidate):
        calls.append(candidate.provider_id)
        raise VendorError(f"vendor {candidate.provider_id} down")

    with pytest.raises(ExecutionError) as excinfo:
        await executor.execute(ChannelType.SHORT_MESSAGE, candidates, operation)

    error = excinfo.value
    assert error.attempts == 3
    assert isinstance(error.last_error, VendorError)
    assert error.__cause__ is error.last_error
    assert str(candidates[-1].provider_id) in str(error)
    assert "short-message" in str(error)
    assert calls == [item.provider_id for item in candidates]
    assert len(usage) == 3
    assert all(not record.success and record.cost == 0.0 for record in usage)
    assert all("error" in record.metadata for record in usage)
    assert len({record.request_id for record in usage}) == 1
    assert [kind for kind, _, _ in events].count("request_error") == 1
    for candidate in candidates:
        assert providers.get_provider(candidate.provider_id).health_score == 70


@pytest.mark.asyncio
async def test_second_candidate_success_stops_chain(executor, candidates, usage, events):
    calls: list[int] = []

    async def operation(candidate: Candidate):
        calls.append(candidate.provider_id)
        if candidate is candidates[0]:
            raise VendorError("timeout")
        return {"message_id": "m-1", "cost": 0.02}

    result = await executor.execute(
        ChannelType.SHORT_MESSAGE,
        candidates,
        operation,
        RequestContext(request_id="req-42", tenant_id=9, metadata={"to": "+15550100"}),
    )

    first, second, third = candidates
    assert result == {"message_id": "m-1", "cost": 0.02}
    assert calls == [first.provider_id, second.provider_id]
    assert [record.success for record in usage] == [False, True]
    assert usage[1].cost == 0.02
    assert usage[1].tenant_id == 9
    assert usage[1].metadata["to"] == "+15550100"
    assert all(record.request_id == "req-42" for record in usage)
    assert providers.get_provider(first.provider_id).health_score == 70
    assert providers.get_provider(second.provider_id).health_score == 81
    assert providers.get_provider(third.provider_id).health_score == 80
    assert providers.get_provider(third.provider_id).total_requests == 0
    assert [kind for kind, _, _ in events] == ["provider_fail", "provider_switched"]


@pytest.mark.asyncio
async def test_success_cost_defaults_to_candidate_rate(executor, candidates, usage, events):
    async def operation(candidate: Candidate):
        return "ok"

    assert await executor.execute(ChannelType.SHORT_MESSAGE, candidates[:1], operation) == "ok"
    assert usage[0].cost == candidates[0].cost_per_unit
    assert usage[0].latency_ms >= 0


@pytest.mark.asyncio
async def test_latency_measured_per_attempt(candidates, usage, events):
    ticks = iter([0.0, 0.25, 1.0, 1.5])
    executor = FailoverExecutor(
        HealthFeedback(RouterSettings()),
        usage_sink=usage.append,
        clock=lambda: next(ticks),
    )

    async def operation(candidate: Candidate):
        if candidate is candidates[0]:
            raise VendorError("boom")
        return "ok"

    await executor.execute(ChannelType.SHORT_MESSAGE, candidates[:2], operation)

    assert [record.latency_ms for record in usage] == [250.0, 500.0]


@pytest.mark.asyncio
async def test_broken_usage_sink_does_not_fail_request(candidates, events):
    def broken_sink(record: UsageRecord) -> None:
        raise RuntimeError("billing pipeline offline")

    executor = FailoverExecutor(HealthFeedback(RouterSettings()), usage_sink=broken_sink)

    async def operation(candidate: Candidate):
        return "delivered"

    assert await executor.execute(ChannelType.SHORT_MESSAGE, candidates, operation) == "delivered"


@pytest.mark.asyncio
async def test_empty_candidate_list_is_a_selection_error(executor, usage):
    async def operation(candidate: Candidate):  # pragma: no cover - never called
        return None

    with pytest.raises(SelectionError):
        await executor.execute(ChannelType.EMAIL, [], operation)

    assert usage == []
