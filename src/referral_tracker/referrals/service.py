from __future__ import annotations

import datetime as dt

import structlog

from .enums import ReferralBucket
from .exceptions import AlreadyReferredError, ReferralError, SelfReferralError
from .models import Referral, ReferralUser, Transfer
from .notifications import CompletionNotifier, LoggingCompletionNotifier
from .progress import ReferralProgress, compute_progress
from .state_machine import archive, classify, record_transfer
from .store import ReferralStore


class ReferralService:
    """Coordinates referral lifecycle changes against an injected store.

    Work on a single referral is serialised through ``store.lock`` so the
    read, the state machine step and the save happen as one unit. The
    service never retries: store failures propagate to the caller.
    """

    def __init__(
        self,
        store: ReferralStore,
        *,
        notifier: CompletionNotifier | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier or LoggingCompletionNotifier()
        self._logger = structlog.get_logger(__name__)

    @property
    def store(self) -> ReferralStore:
        return self._store

    async def create_referral(
        self,
        referrer_id: str,
        referral_id: str,
        *,
        referral_user: ReferralUser | None = None,
        promo_code: str | None = None,
        now: dt.datetime | None = None,
    ) -> Referral:
        """Start tracking a freshly registered referred user."""
        if referrer_id == referral_id:
            raise SelfReferralError("Cannot refer yourself")

        existing = await self._store.find_by_referral_user(referral_id)
        if existing is not None:
            if existing.referrer_id != referrer_id:
                self._logger.warning(
                    "referral_already_claimed",
                    referral_user_id=referral_id,
                    referrer_id=referrer_id,
                    existing_referrer_id=existing.referrer_id,
                )
                raise AlreadyReferredError(
                    f"User '{referral_id}' was already referred by another user"
                )
            return existing

        referral = Referral.register(
            referrer_id=referrer_id,
            referral_id=referral_id,
            referral_user=referral_user,
            promo_code=promo_code,
            now=now,
        )
        return await self._store.add(referral)

    async def get_referral(self, referral_id: str) -> Referral:
        return await self._store.get(referral_id)

    async def get_progress(self, referral_id: str) -> ReferralProgress:
        referral = await self._store.get(referral_id)
        return compute_progress(referral.transfer_count)

    async def record_transfer(
        self,
        referral_id: str,
        transfer: Transfer,
        *,
        now: dt.datetime | None = None,
    ) -> Referral:
        """Apply ``transfer`` to the referral and persist the result.

        Redelivered transfers return the stored referral untouched. The
        completion notifier runs after the completing save, inside the same
        call.
        """
        async with self._store.lock(referral_id):
            referral = await self._store.get(referral_id)
            completed: list[Referral] = []
            try:
                updated = record_transfer(
                    referral, transfer, now=now, on_completed=completed.append
                )
            except ReferralError as exc:
                self._logger.warning(
                    "referral_transfer_rejected",
                    referral_id=referral_id,
                    transfer_id=transfer.id,
                    status=referral.status.value,
                    transfer_count=referral.transfer_count,
                    error=str(exc),
                )
                raise

            if updated is referral:
                self._logger.info(
                    "referral_transfer_duplicate_ignored",
                    referral_id=referral_id,
                    transfer_id=transfer.id,
                )
                return referral

            saved = await self._store.save(updated)
            self._logger.info(
                "referral_transfer_recorded",
                referral_id=referral_id,
                transfer_id=transfer.id,
                transfer_count=saved.transfer_count,
                total_earnings=saved.total_earnings,
                status=saved.status.value,
            )
            if completed:
                await self._notify_completed(saved)
            return saved

    async def archive_referral(
        self, referral_id: str, *, now: dt.datetime | None = None
    ) -> Referral:
        async with self._store.lock(referral_id):
            referral = await self._store.get(referral_id)
            try:
                archived = archive(referral, now=now)
            except ReferralError as exc:
                self._logger.warning(
                    "referral_archive_rejected",
                    referral_id=referral_id,
                    status=referral.status.value,
                    error=str(exc),
                )
                raise
            saved = await self._store.save(archived)
            self._logger.info("referral_archived", referral_id=referral_id)
            return saved

    async def list_active(self, referrer_id: str) -> list[Referral]:
        return await self._list_bucket(referrer_id, ReferralBucket.ACTIVE)

    async def list_completed(self, referrer_id: str) -> list[Referral]:
        return await self._list_bucket(referrer_id, ReferralBucket.COMPLETED)

    async def _list_bucket(
        self, referrer_id: str, bucket: ReferralBucket
    ) -> list[Referral]:
        referrals = await self._store.find_by_referrer(referrer_id)
        return [referral for referral in referrals if classify(referral) is bucket]

    async def _notify_completed(self, referral: Referral) -> None:
        # The completion is persisted and will not fire again on redelivery.
        try:
            await self._notifier.on_completed(referral)
        except Exception:
            self._logger.exception(
                "referral_completion_notify_failed",
                referral_id=referral.id,
                referrer_id=referral.referrer_id,
            )
