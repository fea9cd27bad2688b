from __future__ import annotations

import datetime as dt
import random
from collections.abc import Iterable
from decimal import Decimal

from .exceptions import ReferralNotFoundError
from .milestones import MAX_TRANSFERS
from .models import Referral, ReferralUser, Transfer
from .state_machine import record_transfer
from .store import ReferralStore

_DEMO_USERS = (
    ("Mark", "Anderson"),
    ("Sarah", "Johnson"),
    ("Alex", "Thompson"),
    ("Emma", "Wilson"),
    ("David", "Brown"),
    ("Lisa", "Garcia"),
    ("Michael", "Davis"),
)
_ACTIVE_USERS = 5
_BASE_DATE = dt.datetime(2024, 1, 1, tzinfo=dt.UTC)


def generate_demo_referrals(
    referrer_id: str,
    *,
    rng: random.Random | None = None,
    now: dt.datetime | None = None,
) -> list[Referral]:
    """Build sample referrals for local development.

    The first five users are mid-way (1 to 8 transfers), the last two have
    finished all twelve. Transfers are replayed through the state machine,
    so the records satisfy the same invariants as real ones.
    """

    rng = rng or random.Random()
    year = (now or dt.datetime.now(dt.UTC)).year
    referrals: list[Referral] = []

    for index, (first_name, last_name) in enumerate(_DEMO_USERS):
        transfer_count = (
            rng.randint(1, 8) if index < _ACTIVE_USERS else MAX_TRANSFERS
        )
        created_at = _BASE_DATE + dt.timedelta(weeks=index)
        user_id = f"user-{index + 1}"

        referral = Referral(
            id=f"referral-{index + 1}",
            referrer_id=referrer_id,
            referral_id=user_id,
            referral_user=ReferralUser(
                id=user_id,
                first_name=first_name,
                last_name=last_name,
                email=f"{first_name}.{last_name}@email.com".lower(),
                registration_date=created_at,
            ),
            promo_code=f"{first_name.upper()}{year}",
            created_at=created_at,
            updated_at=created_at,
        )
        for number in range(transfer_count):
            completed_at = created_at + dt.timedelta(days=3 * (number + 1))
            transfer = Transfer(
                id=f"transfer-{index}-{number}",
                amount=Decimal(rng.randint(50, 549)),
                currency="USD",
                completed_at=completed_at,
            )
            referral = record_transfer(referral, transfer, now=completed_at)
        referrals.append(referral)

    return referrals


async def seed_store(store: ReferralStore, referrals: Iterable[Referral]) -> int:
    """Insert ``referrals`` into ``store``; return how many were new."""

    added = 0
    for referral in referrals:
        try:
            await store.get(referral.id)
        except ReferralNotFoundError:
            await store.add(referral)
            added += 1
    return added
