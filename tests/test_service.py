from __future__ import annotations

import asyncio

import pytest

from referral_tracker.referrals.enums import ReferralStatus
from referral_tracker.referrals.exceptions import (
    AlreadyReferredError,
    InvalidStateError,
    ReferralNotFoundError,
    SelfReferralError,
)
from referral_tracker.referrals.models import Referral
from referral_tracker.referrals.service import ReferralService
from referral_tracker.referrals.store import InMemoryReferralStore

from .factories import (
    BASE_TIME,
    REFERRER_ID,
    StubNotifier,
    referral_factory,
    transfer_factory,
)


async def _create(service: ReferralService, referral_id: str = "user-1") -> Referral:
    return await service.create_referral(REFERRER_ID, referral_id, now=BASE_TIME)


class TestReferralService:
    """Test cases for ReferralService."""

    async def test_create_referral(self, referral_service: ReferralService) -> None:
        referral = await _create(referral_service)

        assert referral.referrer_id == REFERRER_ID
        assert referral.status is ReferralStatus.ACTIVE
        assert await referral_service.get_referral(referral.id) is referral

    async def test_create_referral_returns_existing(
        self, referral_service: ReferralService
    ) -> None:
        first = await _create(referral_service)
        second = await _create(referral_service)

        assert first is second

    async def test_create_referral_self_referral_fails(
        self, referral_service: ReferralService
    ) -> None:
        with pytest.raises(SelfReferralError):
            await referral_service.create_referral("user-1", "user-1")

    async def test_create_referral_for_user_of_another_referrer_fails(
        self, referral_service: ReferralService, store: InMemoryReferralStore
    ) -> None:
        first = await _create(referral_service, "user-x")

        with pytest.raises(AlreadyReferredError):
            await referral_service.create_referral("referrer-b", "user-x")

        assert len(store) == 1
        assert await store.find_by_referral_user("user-x") is first

    async def test_record_transfer_persists(
        self,
        referral_service: ReferralService,
        store: InMemoryReferralStore,
    ) -> None:
        referral = await _create(referral_service)

        updated = await referral_service.record_transfer(
            referral.id, transfer_factory(transfer_id="transfer-001")
        )

        assert updated.transfer_count == 1
        assert updated.total_earnings == 3
        assert await store.get(referral.id) is updated

    async def test_record_transfer_unknown_referral(
        self, referral_service: ReferralService
    ) -> None:
        with pytest.raises(ReferralNotFoundError):
            await referral_service.record_transfer("missing", transfer_factory())

    async def test_unknown_referral_leaves_no_lock(
        self, referral_service: ReferralService, store: InMemoryReferralStore
    ) -> None:
        for number in range(20):
            with pytest.raises(ReferralNotFoundError):
                await referral_service.record_transfer(
                    f"bogus-{number}", transfer_factory()
                )
            with pytest.raises(ReferralNotFoundError):
                await referral_service.archive_referral(f"bogus-{number}")

        assert store._locks == {}

    async def test_redelivery_does_not_double_count(
        self, referral_service: ReferralService
    ) -> None:
        referral = await _create(referral_service)
        transfer = transfer_factory(transfer_id="transfer-dup")

        once = await referral_service.record_transfer(referral.id, transfer)
        twice = await referral_service.record_transfer(referral.id, transfer)

        assert twice == once
        assert twice.transfer_count == 1

    async def test_completion_notifies_once(
        self,
        referral_service: ReferralService,
        notifier: StubNotifier,
    ) -> None:
        referral = await _create(referral_service)
        transfers = [transfer_factory(transfer_id=f"t-{n}") for n in range(12)]

        for transfer in transfers:
            result = await referral_service.record_transfer(referral.id, transfer)
        # Webhook redelivers the final transfer.
        again = await referral_service.record_transfer(referral.id, transfers[-1])

        assert result.status is ReferralStatus.COMPLETED
        assert result.transfer_count == 12
        assert result.total_earnings == 36
        assert again is result
        assert notifier.completed == [result]

    async def test_record_transfer_on_completed_fails_unchanged(
        self, referral_service: ReferralService, store: InMemoryReferralStore
    ) -> None:
        referral = await _create(referral_service)
        for number in range(12):
            await referral_service.record_transfer(
                referral.id, transfer_factory(transfer_id=f"t-{number}")
            )
        before = await store.get(referral.id)

        with pytest.raises(InvalidStateError):
            await referral_service.record_transfer(
                referral.id, transfer_factory(transfer_id="extra")
            )

        assert await store.get(referral.id) is before

    async def test_failing_notifier_keeps_completion(
        self, store: InMemoryReferralStore
    ) -> None:
        class BrokenNotifier:
            async def on_completed(self, referral: Referral) -> None:
                raise RuntimeError("mail server down")

        service = ReferralService(store, notifier=BrokenNotifier())
        referral = await store.add(referral_factory(transfer_count=11))

        result = await service.record_transfer(referral.id, transfer_factory())

        assert result.status is ReferralStatus.COMPLETED
        assert (await store.get(referral.id)).status is ReferralStatus.COMPLETED

    async def test_concurrent_transfers_are_serialised(
        self, referral_service: ReferralService, notifier: StubNotifier
    ) -> None:
        referral = await _create(referral_service)
        transfers = [transfer_factory(transfer_id=f"c-{n}") for n in range(12)]
        # Every transfer is delivered twice, all at once.
        deliveries = transfers + transfers

        await asyncio.gather(
            *(
                referral_service.record_transfer(referral.id, transfer)
                for transfer in deliveries
            )
        )

        final = await referral_service.get_referral(referral.id)
        assert final.transfer_count == 12
        assert final.total_earnings == 36
        assert final.status is ReferralStatus.COMPLETED
        assert len(notifier.completed) == 1

    async def test_archive_referral(
        self, referral_service: ReferralService, store: InMemoryReferralStore
    ) -> None:
        referral = await store.add(referral_factory(transfer_count=11))
        await referral_service.record_transfer(referral.id, transfer_factory())

        archived = await referral_service.archive_referral(referral.id)

        assert archived.status is ReferralStatus.ARCHIVED
        with pytest.raises(InvalidStateError):
            await referral_service.archive_referral(referral.id)

    async def test_archive_active_referral_fails(
        self, referral_service: ReferralService
    ) -> None:
        referral = await _create(referral_service)

        with pytest.raises(InvalidStateError):
            await referral_service.archive_referral(referral.id)

    async def test_lists_by_bucket(
        self, referral_service: ReferralService, store: InMemoryReferralStore
    ) -> None:
        in_progress = await store.add(referral_factory(transfer_count=11))
        lagging = await store.add(
            referral_factory(transfer_count=12, status=ReferralStatus.ACTIVE)
        )
        done = await store.add(
            referral_factory(transfer_count=12, status=ReferralStatus.COMPLETED)
        )
        await store.add(referral_factory(referrer_id="someone-else"))

        active = await referral_service.list_active(REFERRER_ID)
        completed = await referral_service.list_completed(REFERRER_ID)

        assert active == [in_progress]
        assert {r.id for r in completed} == {lagging.id, done.id}

    async def test_get_progress(self, referral_service: ReferralService) -> None:
        referral = await _create(referral_service)
        await referral_service.record_transfer(referral.id, transfer_factory())

        progress = await referral_service.get_progress(referral.id)

        assert progress.transfer_count == 1
        assert progress.next_milestone_label == "2nd transfer"
