"""Lifecycle rules for referrals.

Every operation here is pure with respect to its input: the referral passed
in is never modified and a new instance is returned when something changes.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable

import structlog

from .enums import ReferralBucket, ReferralStatus
from .exceptions import CapacityExceededError, InvalidStateError, InvalidTransferError
from .milestones import EARNING_PER_TRANSFER, MAX_TRANSFERS
from .models import Referral, Transfer, utcnow

__all__ = ["archive", "classify", "record_transfer"]

CompletionCallback = Callable[[Referral], None]

logger = structlog.get_logger(__name__)

_TIMESTAMP_STEP = dt.timedelta(microseconds=1)


def _advance(previous: dt.datetime, now: dt.datetime | None) -> dt.datetime:
    candidate = now if now is not None else utcnow()
    if candidate.tzinfo is None:
        candidate = candidate.replace(tzinfo=dt.UTC)
    if candidate <= previous:
        return previous + _TIMESTAMP_STEP
    return candidate


def record_transfer(
    referral: Referral,
    transfer: Transfer,
    *,
    now: dt.datetime | None = None,
    on_completed: CompletionCallback | None = None,
) -> Referral:
    """Append ``transfer`` to ``referral`` and return the updated referral.

    A transfer whose id is already recorded is absorbed: the same referral
    object comes back and nothing fires. When the twelfth transfer lands the
    referral becomes ``completed`` and ``on_completed`` is called with it
    before this function returns.
    """

    if referral.has_transfer(transfer.id):
        logger.debug(
            "referral_transfer_duplicate",
            referral_id=referral.id,
            transfer_id=transfer.id,
        )
        return referral

    if referral.status is not ReferralStatus.ACTIVE:
        raise InvalidStateError(
            f"Cannot record a transfer on a {referral.status.value} referral"
        )
    if referral.transfer_count >= MAX_TRANSFERS:
        raise CapacityExceededError(
            f"Referral already holds {MAX_TRANSFERS} transfers"
        )
    if transfer.completed_at < referral.created_at:
        raise InvalidTransferError(
            f"Transfer '{transfer.id}' completed before the referral was created"
        )

    transfer_count = referral.transfer_count + 1
    completed = transfer_count == MAX_TRANSFERS
    recorded = transfer.model_copy(update={"referral_earning": EARNING_PER_TRANSFER})

    updated = referral.model_copy(
        update={
            "transfers": (*referral.transfers, recorded),
            "transfer_count": transfer_count,
            "total_earnings": transfer_count * EARNING_PER_TRANSFER,
            "status": ReferralStatus.COMPLETED if completed else referral.status,
            "updated_at": _advance(referral.updated_at, now),
            "version": referral.version + 1,
        }
    )

    if completed and on_completed is not None:
        on_completed(updated)
    return updated


def archive(referral: Referral, *, now: dt.datetime | None = None) -> Referral:
    """Retire a completed referral."""

    if referral.status is not ReferralStatus.COMPLETED:
        raise InvalidStateError(
            f"Only completed referrals can be archived, not {referral.status.value}"
        )
    return referral.model_copy(
        update={
            "status": ReferralStatus.ARCHIVED,
            "updated_at": _advance(referral.updated_at, now),
            "version": referral.version + 1,
        }
    )


def classify(referral: Referral) -> ReferralBucket | None:
    """Pick the listing bucket for ``referral``.

    Status and transfer count are written by different paths, so a referral
    with twelve transfers counts as completed even if its status still says
    active. Returns ``None`` for records that belong to neither list.
    """

    if referral.status is ReferralStatus.COMPLETED:
        return ReferralBucket.COMPLETED
    if referral.transfer_count >= MAX_TRANSFERS:
        return ReferralBucket.COMPLETED
    if referral.status is ReferralStatus.ACTIVE:
        return ReferralBucket.ACTIVE
    return None
