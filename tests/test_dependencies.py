from __future__ import annotations

import pytest

from referral_tracker.core.config import get_settings
from referral_tracker.core.redis import get_redis
from referral_tracker.referrals.dependencies import (
    get_completion_notifier,
    get_referral_service,
    get_referral_store,
    reset_referral_dependencies,
)
from referral_tracker.referrals.notifications import LoggingCompletionNotifier

from .factories import BASE_TIME, transfer_factory


async def test_service_is_cached() -> None:
    service = await get_referral_service()

    assert await get_referral_service() is service
    assert service.store is get_referral_store()
    assert isinstance(get_completion_notifier(), LoggingCompletionNotifier)


async def test_reset_rebuilds_singletons() -> None:
    service = await get_referral_service()
    reset_referral_dependencies()

    assert await get_referral_service() is not service


async def test_demo_data_seeded(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REFERRALS__SEED_DEMO_DATA", "true")
    get_settings.cache_clear()
    settings = get_settings()

    service = await get_referral_service()
    referrer_id = str(settings.referrals.demo_referrer_id)

    assert len(await service.list_active(referrer_id)) == 5
    assert len(await service.list_completed(referrer_id)) == 2


@pytest.mark.usefixtures("reset_redis")
async def test_broadcast_enabled_publishes_state(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("REFERRALS__BROADCAST_ENABLED", "true")
    get_settings.cache_clear()

    service = await get_referral_service()
    referral = await service.create_referral("referrer-1", "user-1", now=BASE_TIME)
    await service.record_transfer(referral.id, transfer_factory())

    redis = await get_redis()
    assert await redis.get(f"referrals:{referral.id}:state") is not None
