from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from referral_tracker.referrals.milestones import (
    MAX_TRANSFERS,
    earnings_for,
    milestone_label,
    ordinal_label,
    validate_transfer_count,
)

__all__ = ["Milestone", "ReferralProgress", "compute_progress"]


@dataclass(frozen=True, slots=True)
class Milestone:
    """One point on the progress track."""

    index: int
    label: str
    active: bool


@dataclass(frozen=True, slots=True)
class ReferralProgress:
    """Display progress derived from a transfer count."""

    transfer_count: int
    active_milestone_count: int
    fill_ratio: float
    next_milestone_label: str
    earnings: int
    milestones: tuple[Milestone, ...]
    is_joined_active: bool = True

    @property
    def is_complete(self) -> bool:
        return self.transfer_count == MAX_TRANSFERS


def compute_progress(transfer_count: int) -> ReferralProgress:
    """Derive the progress indicator state for ``transfer_count`` transfers.

    Milestone 0 ("Joined") is always active; milestone ``i`` is active once
    ``i`` transfers have completed. A finished referral has no next
    milestone, so its label stays on the last one reached.
    """

    return _progress_for(validate_transfer_count(transfer_count))


@lru_cache(maxsize=MAX_TRANSFERS + 1)
def _progress_for(transfer_count: int) -> ReferralProgress:
    if transfer_count == MAX_TRANSFERS:
        next_label = ordinal_label(MAX_TRANSFERS)
    else:
        next_label = ordinal_label(transfer_count + 1)

    milestones = tuple(
        Milestone(
            index=index,
            label=milestone_label(index),
            active=index <= transfer_count,
        )
        for index in range(MAX_TRANSFERS + 1)
    )

    return ReferralProgress(
        transfer_count=transfer_count,
        active_milestone_count=transfer_count + 1,
        fill_ratio=transfer_count / MAX_TRANSFERS,
        next_milestone_label=next_label,
        earnings=earnings_for(transfer_count),
        milestones=milestones,
    )
