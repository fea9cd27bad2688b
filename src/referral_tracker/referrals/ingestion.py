"""Translate inbound transfer events into referral updates.

The matching rule lives here, outside the engine: by default a transfer
made by a referred user is attributed to the referral whose ``referral_id``
is that user's identifier.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from referral_tracker.core.constants import REFERRAL_ID_CTX_KEY
from referral_tracker.core.logging import bind_context, clear_context

from .exceptions import ReferralNotFoundError
from .models import Referral
from .schemas import TransferEvent
from .service import ReferralService
from .store import ReferralStore

logger = structlog.get_logger(__name__)


class ReferralResolver(Protocol):
    async def resolve(self, event: TransferEvent) -> Referral:
        """Return the referral the event's transfer belongs to."""
        ...


class ReferredUserResolver:
    """Match events on the referred user's identifier."""

    def __init__(self, store: ReferralStore) -> None:
        self._store = store

    async def resolve(self, event: TransferEvent) -> Referral:
        referral = await self._store.find_by_referral_user(
            event.referral_user_identifier
        )
        if referral is None:
            raise ReferralNotFoundError(
                f"No referral for user '{event.referral_user_identifier}'"
            )
        return referral


class TransferEventHandler:
    """Apply transfer events delivered at least once by an upstream webhook."""

    def __init__(
        self,
        service: ReferralService,
        resolver: ReferralResolver | None = None,
    ) -> None:
        self._service = service
        self._resolver = resolver or ReferredUserResolver(service.store)

    async def handle(self, event: TransferEvent) -> Referral:
        referral = await self._resolver.resolve(event)
        bind_context(
            **{REFERRAL_ID_CTX_KEY: referral.id}, transfer_id=event.transfer_id
        )
        try:
            logger.debug(
                "transfer_event_resolved",
                referral_user_identifier=event.referral_user_identifier,
            )
            return await self._service.record_transfer(
                referral.id, event.to_transfer()
            )
        finally:
            clear_context(REFERRAL_ID_CTX_KEY, "transfer_id")
