"""Shared fixtures for referral tracker tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from typing import cast

import pytest
import pytest_asyncio
import redis.asyncio as redis
from fakeredis import aioredis as fakeredis

from referral_tracker.core.config import get_settings
from referral_tracker.core.redis import close_redis
from referral_tracker.referrals.dependencies import reset_referral_dependencies
from referral_tracker.referrals.service import ReferralService
from referral_tracker.referrals.store import InMemoryReferralStore

from .factories import StubNotifier


@pytest.fixture(autouse=True)
def configure_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("REDIS__URL", "fakeredis://")
    monkeypatch.setenv("REFERRALS__BROADCAST_ENABLED", "false")
    monkeypatch.setenv("REFERRALS__SEED_DEMO_DATA", "false")

    reset_referral_dependencies()
    get_settings.cache_clear()
    try:
        yield
    finally:
        reset_referral_dependencies()
        get_settings.cache_clear()


@pytest_asyncio.fixture
async def redis_client() -> AsyncIterator[redis.Redis]:
    """Provide an in-memory Redis client for testing."""
    client = fakeredis.FakeRedis(decode_responses=True)
    try:
        yield cast(redis.Redis, client)
    finally:
        await client.flushdb()
        await client.aclose()


@pytest_asyncio.fixture
async def reset_redis() -> AsyncIterator[None]:
    await close_redis()
    try:
        yield
    finally:
        await close_redis()


@pytest.fixture
def store() -> InMemoryReferralStore:
    return InMemoryReferralStore()


@pytest.fixture
def notifier() -> StubNotifier:
    return StubNotifier()


@pytest.fixture
def referral_service(
    store: InMemoryReferralStore, notifier: StubNotifier
) -> ReferralService:
    return ReferralService(store, notifier=notifier)
