from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Protocol

import structlog

from .events import ReferralEvent, ReferralEventBus, describe_change
from .exceptions import ReferralNotFoundError, WriteConflictError
from .models import Referral

__all__ = ["InMemoryReferralStore", "ReferralStore"]


class ReferralStore(Protocol):
    """Persistence contract the referral engine depends on.

    ``save`` must be atomic per record and reject a referral whose
    ``version`` is not exactly one past the stored version. ``lock`` must
    serialise callers working on the same referral id and raise
    ``ReferralNotFoundError`` for an id the store does not hold.
    """

    @property
    def events(self) -> ReferralEventBus:
        """Channel receiving every persisted change."""
        ...

    async def add(self, referral: Referral) -> Referral:
        """Insert ``referral``; return the stored record if the id exists."""
        ...

    async def get(self, referral_id: str) -> Referral:
        ...

    async def find_by_referrer(self, referrer_id: str) -> Sequence[Referral]:
        ...

    async def find_by_referral_user(self, referral_user_id: str) -> Referral | None:
        ...

    async def save(self, referral: Referral) -> Referral:
        ...

    def lock(self, referral_id: str) -> asyncio.Lock:
        ...


class InMemoryReferralStore:
    """Process-local store keyed by referral id."""

    def __init__(self, events: ReferralEventBus | None = None) -> None:
        self._records: dict[str, Referral] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._write_lock = asyncio.Lock()
        self._events = events or ReferralEventBus()
        self._logger = structlog.get_logger(__name__)

    @property
    def events(self) -> ReferralEventBus:
        return self._events

    def lock(self, referral_id: str) -> asyncio.Lock:
        # Only stored referrals get a lock.
        if referral_id not in self._records:
            raise ReferralNotFoundError(f"Referral '{referral_id}' not found")
        lock = self._locks.get(referral_id)
        if lock is None:
            lock = self._locks[referral_id] = asyncio.Lock()
        return lock

    async def add(self, referral: Referral) -> Referral:
        async with self._write_lock:
            existing = self._records.get(referral.id)
            if existing is not None:
                return existing
            self._records[referral.id] = referral

        self._logger.info(
            "referral_stored",
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
        )
        await self._events.publish(
            ReferralEvent(type=describe_change(None, referral), referral=referral)
        )
        return referral

    async def get(self, referral_id: str) -> Referral:
        referral = self._records.get(referral_id)
        if referral is None:
            raise ReferralNotFoundError(f"Referral '{referral_id}' not found")
        return referral

    async def find_by_referrer(self, referrer_id: str) -> list[Referral]:
        referrals = [
            referral
            for referral in self._records.values()
            if referral.referrer_id == referrer_id
        ]
        referrals.sort(key=lambda referral: referral.created_at)
        return referrals

    async def find_by_referral_user(self, referral_user_id: str) -> Referral | None:
        for referral in self._records.values():
            if referral.referral_id == referral_user_id:
                return referral
        return None

    async def save(self, referral: Referral) -> Referral:
        async with self._write_lock:
            previous = self._records.get(referral.id)
            if previous is None:
                raise ReferralNotFoundError(f"Referral '{referral.id}' not found")
            if referral.version != previous.version + 1:
                raise WriteConflictError(
                    f"Referral '{referral.id}' is at version {previous.version}, "
                    f"cannot save version {referral.version}"
                )
            self._records[referral.id] = referral

        await self._events.publish(
            ReferralEvent(type=describe_change(previous, referral), referral=referral)
        )
        return referral

    def __len__(self) -> int:
        return len(self._records)
