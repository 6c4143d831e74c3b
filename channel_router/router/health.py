"""Health-score feedback for providers.

Success and failure move the score asymmetrically (by default +1 / -10) so a
handful of consecutive failures drops a provider below the admission
threshold, while trust is only regained after a sustained run of successes.
"""

from __future__ import annotations

import logging

from channel_router.core.config import ChannelType, HealthPolicy, RouterSettings
from channel_router.storage import providers as provider_store
from channel_router.telemetry.events import record_event

logger = logging.getLogger("channel_router.health")


def health_delta(success: bool, policy: HealthPolicy) -> int:
    return policy.success_increment if success else -policy.failure_decrement


class HealthFeedback:
    """Persist per-attempt outcomes and report admission-threshold crossings."""

    def __init__(self, settings: RouterSettings) -> None:
        self._settings = settings

    def record(
        self,
        provider_id: int,
        channel_type: ChannelType,
        success: bool,
        *,
        previous_score: int | None = None,
    ) -> int | None:
        policy = self._settings.health_policy(channel_type)
        score = provider_store.record_outcome(
            provider_id, success, delta=health_delta(success, policy)
        )
        if score is None:
            logger.warning(
                "Health update for unknown provider",
                extra={"event": "health_update_missing", "provider_id": provider_id},
            )
            return None

        threshold = self._settings.admission_threshold
        if (
            not success
            and score < threshold
            and (previous_score is None or previous_score >= threshold)
        ):
            logger.warning(
                "Provider dropped below admission threshold",
                extra={
                    "event": "provider_health_tripped",
                    "provider_id": provider_id,
                    "channel_type": ChannelType(channel_type).value,
                    "health_score": score,
                    "threshold": threshold,
                },
            )
            record_event(
                "provider_health_tripped",
                "WARNING",
                channel_type=ChannelType(channel_type).value,
                provider_from=provider_id,
                message=f"Health score {score} below admission threshold {threshold}",
                meta={"health_score": score, "threshold": threshold},
            )
        return score


__all__ = ["HealthFeedback", "health_delta"]
