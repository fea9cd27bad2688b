from __future__ import annotations

from referral_tracker.core.config import Settings, get_settings
from referral_tracker.core.logging import configure_logging
from referral_tracker.core.redis import get_redis

from .broadcaster import ReferralBroadcaster
from .demo import generate_demo_referrals, seed_store
from .notifications import CompletionNotifier, LoggingCompletionNotifier
from .service import ReferralService
from .store import InMemoryReferralStore, ReferralStore

__all__ = [
    "get_completion_notifier",
    "get_referral_service",
    "get_referral_store",
    "reset_referral_dependencies",
]

_STORE: ReferralStore | None = None
_NOTIFIER: CompletionNotifier | None = None
_SERVICE: ReferralService | None = None


def get_referral_store() -> ReferralStore:
    global _STORE
    if _STORE is None:
        _STORE = InMemoryReferralStore()
    return _STORE


def get_completion_notifier() -> CompletionNotifier:
    global _NOTIFIER
    if _NOTIFIER is None:
        _NOTIFIER = LoggingCompletionNotifier()
    return _NOTIFIER


async def get_referral_service(settings: Settings | None = None) -> ReferralService:
    """Get the process-wide referral service, wiring its collaborators once."""

    global _SERVICE
    if _SERVICE is not None:
        return _SERVICE

    settings = settings or get_settings()
    configure_logging(settings)
    store = get_referral_store()

    if settings.referrals.broadcast_enabled:
        redis = await get_redis(settings)
        broadcaster = ReferralBroadcaster(
            redis,
            prefix=settings.redis.channel_prefix,
            state_ttl_seconds=settings.redis.state_ttl_seconds,
        )
        store.events.subscribe(broadcaster)

    if settings.referrals.seed_demo_data:
        referrer_id = str(settings.referrals.demo_referrer_id)
        await seed_store(store, generate_demo_referrals(referrer_id))

    _SERVICE = ReferralService(store, notifier=get_completion_notifier())
    return _SERVICE


def reset_referral_dependencies() -> None:
    """Reset cached singletons to allow reconfiguration during tests."""

    global _STORE, _NOTIFIER, _SERVICE
    _STORE = None
    _NOTIFIER = None
    _SERVICE = None
