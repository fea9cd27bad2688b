from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, cast

import structlog
from redis.asyncio import Redis

from referral_tracker.core.constants import DEFAULT_CHANNEL_PREFIX

from .enums import ReferralStatus
from .events import ReferralEvent

__all__ = ["ReferralBroadcaster"]

logger = structlog.get_logger(__name__)

_TERMINAL_STATUSES = {ReferralStatus.COMPLETED, ReferralStatus.ARCHIVED}
_STATE_TTL_SECONDS = 3600


class ReferralBroadcaster:
    """Publish referral changes over Redis pub/sub.

    Listing views subscribe to ``<prefix>:<referrer_id>`` instead of
    re-fetching on a timer. The latest payload of each referral is also kept
    so a reconnecting client can pick up where it left off.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = DEFAULT_CHANNEL_PREFIX,
        state_ttl_seconds: int = _STATE_TTL_SECONDS,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._state_ttl_seconds = state_ttl_seconds

    async def __call__(self, event: ReferralEvent) -> None:
        await self.publish(event)

    async def publish(self, event: ReferralEvent) -> dict[str, Any]:
        """Store the latest state and publish it to the referrer's channel."""

        referral = event.referral
        payload = dict(event.to_payload())
        payload.update(
            {
                "terminal": referral.status in _TERMINAL_STATUSES,
                "sent_at": _timestamp(),
            }
        )
        encoded = json.dumps(payload)

        await self._redis.set(
            self.state_key(referral.id), encoded, ex=self._state_ttl_seconds
        )
        channel = self.channel_name(referral.referrer_id)
        await self._redis.publish(channel, encoded)
        logger.debug(
            "referral_event_published",
            channel=channel,
            event_type=payload["type"],
            version=payload["version"],
        )
        return payload

    async def latest(self, referral_id: str) -> dict[str, Any] | None:
        raw = await self._redis.get(self.state_key(referral_id))
        if raw is None:
            return None
        loaded = json.loads(raw)
        if not isinstance(loaded, dict):  # pragma: no cover - defensive guard
            raise ValueError("Stored referral payload must be a mapping")
        return cast(dict[str, Any], loaded)

    def channel_name(self, referrer_id: str) -> str:
        return f"{self._prefix}:{referrer_id}"

    def state_key(self, referral_id: str) -> str:
        return f"{self._prefix}:{referral_id}:state"


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()
