"""Milestone rules: the fixed join + twelve transfers sequence."""

from __future__ import annotations

from referral_tracker.referrals.exceptions import MilestoneOutOfRangeError

MAX_TRANSFERS = 12
EARNING_PER_TRANSFER = 3
JOINED_LABEL = "Joined"

_ORDINAL_SUFFIXES = {1: "st", 2: "nd", 3: "rd"}


def _require_count(value: object, *, lower: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MilestoneOutOfRangeError(f"{name} must be an integer, got {value!r}")
    if value < lower or value > MAX_TRANSFERS:
        raise MilestoneOutOfRangeError(
            f"{name} must be between {lower} and {MAX_TRANSFERS}, got {value}"
        )
    return value


def ordinal_label(n: int) -> str:
    """Return the display label of the ``n``-th transfer milestone.

    Only 1, 2 and 3 get their English suffixes; every other value uses "th".
    The sequence stops at 12, so the teen exceptions never come into play.
    """

    n = _require_count(n, lower=1, name="transfer number")
    return f"{n}{_ORDINAL_SUFFIXES.get(n, 'th')} transfer"


def milestone_label(index: int) -> str:
    """Label for milestone ``index`` where 0 is the join milestone."""

    index = _require_count(index, lower=0, name="milestone index")
    if index == 0:
        return JOINED_LABEL
    return ordinal_label(index)


def validate_transfer_count(transfer_count: int) -> int:
    return _require_count(transfer_count, lower=0, name="transfer count")


def earnings_for(transfer_count: int) -> int:
    return validate_transfer_count(transfer_count) * EARNING_PER_TRANSFER
