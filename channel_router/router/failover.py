"""Failover execution across a ranked candidate list."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from channel_router.core.config import ChannelType
from channel_router.core.exceptions import ExecutionError, SelectionError
from channel_router.logging import get_request_id
from channel_router.router.health import HealthFeedback
from channel_router.router.selector import Candidate
from channel_router.storage.usage_log import UsageRecord, record_usage
from channel_router.telemetry.events import record_event

logger = logging.getLogger("channel_router.failover")

T = TypeVar("T")

Operation = Callable[[Candidate], Awaitable[T]]
UsageSink = Callable[[UsageRecord], None]


@dataclass
class RequestContext:
    request_id: str | None = None
    tenant_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def resolved_request_id(self) -> str:
        return self.request_id or get_request_id() or uuid.uuid4().hex


def _result_cost(result: Any, candidate: Candidate) -> float:
    if isinstance(result, Mapping):
        cost = result.get("cost")
    else:
        cost = getattr(result, "cost", None)
    if isinstance(cost, (int, float)) and not isinstance(cost, bool):
        return float(cost)
    return candidate.cost_per_unit


class FailoverExecutor:
    """Invoke an operation per candidate until one succeeds."""

    def __init__(
        self,
        health: HealthFeedback,
        *,
        usage_sink: UsageSink = record_usage,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._health = health
        self._usage_sink = usage_sink
        self._clock = clock

    async def execute(
        self,
        channel_type: ChannelType,
        candidates: Sequence[Candidate],
        operation: Operation[T],
        context: RequestContext | None = None,
    ) -> T:
        """Return the first successful result, or raise one ``ExecutionError``."""
        channel = ChannelType(channel_type)
        context = context or RequestContext()
        request_id = context.resolved_request_id()
        if not candidates:
            raise SelectionError(channel, context.tenant_id)

        last_error: Exception | None = None
        last_failed: Candidate | None = None

        for attempt, candidate in enumerate(candidates, start=1):
            if last_failed is not None:
                logger.info(
                    "Provider switched",
                    extra={
                        "event": "provider_switched",
                        "channel_type": channel.value,
                        "provider_from": last_failed.provider_id,
                        "provider_to": candidate.provider_id,
                        "attempt": attempt,
                    },
                )
                record_event(
                    "provider_switched",
                    "INFO",
                    request_id=request_id,
                    channel_type=channel.value,
                    provider_from=last_failed.provider_id,
                    provider_to=candidate.provider_id,
                    message=str(last_error) if last_error else None,
                    meta={"attempt": attempt},
                )

            started = self._clock()
            try:
                result = await operation(candidate)
            except Exception as exc:
                latency_ms = (self._clock() - started) * 1000
                logger.warning(
                    "Provider failed",
                    extra={
                        "event": "provider_fail",
                        "channel_type": channel.value,
                        "provider_id": candidate.provider_id,
                        "error_type": type(exc).__name__,
                        "error_message": str(exc),
                        "attempt": attempt,
                        "latency_ms": round(latency_ms, 2),
                    },
                )
                record_event(
                    "provider_fail",
                    "WARNING",
                    request_id=request_id,
                    channel_type=channel.value,
                    provider_from=candidate.provider_id,
                    message=str(exc),
                    meta={"attempt": attempt, "error_type": type(exc).__name__},
                )
                self._emit(
                    UsageRecord(
                        request_id=request_id,
                        provider_id=candidate.provider_id,
                        tenant_id=context.tenant_id,
                        channel_type=channel.value,
                        success=False,
                        latency_ms=latency_ms,
                        cost=0.0,
                        metadata={
                            **context.metadata,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                            "attempt": attempt,
                        },
                    )
                )
                self._feedback(candidate, channel, success=False)
                last_error = exc
                last_failed = candidate
                continue

            latency_ms = (self._clock() - started) * 1000
            self._emit(
                UsageRecord(
                    request_id=request_id,
                    provider_id=candidate.provider_id,
                    tenant_id=context.tenant_id,
                    channel_type=channel.value,
                    success=True,
                    latency_ms=latency_ms,
                    cost=_result_cost(result, candidate),
                    metadata={**context.metadata, "attempt": attempt},
                )
            )
            self._feedback(candidate, channel, success=True)
            return result

        logger.error(
            "All providers exhausted",
            extra={
                "event": "request_error",
                "channel_type": channel.value,
                "attempts": len(candidates),
                "error_message": str(last_error),
            },
        )
        record_event(
            "request_error",
            "ERROR",
            request_id=request_id,
            channel_type=channel.value,
            provider_from=last_failed.provider_id if last_failed else None,
            message=str(last_error),
            meta={"attempts": len(candidates)},
        )
        raise ExecutionError(channel, len(candidates), last_error) from last_error

    def _emit(self, record: UsageRecord) -> None:
        try:
            self._usage_sink(record)
        except Exception:
            logger.exception(
                "Usage sink rejected record",
                extra={"event": "usage_sink_error", "provider_id": record.provider_id},
            )

    def _feedback(self, candidate: Candidate, channel: ChannelType, *, success: bool) -> None:
        try:
            self._health.record(
                candidate.provider_id,
                channel,
                success,
                previous_score=candidate.health_score,
            )
        except Exception:
            logger.exception(
                "Failed to update provider health",
                extra={"event": "health_update_error", "provider_id": candidate.provider_id},
            )


__all__ = ["FailoverExecutor", "Operation", "RequestContext"]
