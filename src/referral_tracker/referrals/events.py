from __future__ import annotations

import datetime as dt
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from .enums import ReferralEventType, ReferralStatus
from .models import Referral, utcnow

__all__ = [
    "ReferralEvent",
    "ReferralEventBus",
    "ReferralListener",
    "describe_change",
]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ReferralEvent:
    """A persisted change to a referral."""

    type: ReferralEventType
    referral: Referral
    occurred_at: dt.datetime = field(default_factory=utcnow)

    def to_payload(self) -> dict[str, object]:
        referral = self.referral
        return {
            "type": self.type.value,
            "referral_id": referral.id,
            "referrer_id": referral.referrer_id,
            "status": referral.status.value,
            "transfer_count": referral.transfer_count,
            "total_earnings": referral.total_earnings,
            "version": referral.version,
            "updated_at": referral.updated_at.isoformat(),
        }


ReferralListener = Callable[[ReferralEvent], Awaitable[None]]


def describe_change(previous: Referral | None, current: Referral) -> ReferralEventType:
    """Name the change between two consecutive versions of a referral."""

    if previous is None:
        return ReferralEventType.CREATED
    if (
        current.status is ReferralStatus.COMPLETED
        and previous.status is not ReferralStatus.COMPLETED
    ):
        return ReferralEventType.COMPLETED
    if (
        current.status is ReferralStatus.ARCHIVED
        and previous.status is not ReferralStatus.ARCHIVED
    ):
        return ReferralEventType.ARCHIVED
    return ReferralEventType.TRANSFER_RECORDED


class ReferralEventBus:
    """Fan persisted referral changes out to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[ReferralListener] = []

    def subscribe(self, listener: ReferralListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, event: ReferralEvent) -> None:
        # Listener failures are logged only; the write is already persisted.
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception(
                    "referral_listener_failed",
                    event_type=event.type.value,
                    referral_id=event.referral.id,
                )
