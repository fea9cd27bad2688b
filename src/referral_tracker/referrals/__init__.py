from __future__ import annotations

from .enums import ReferralBucket, ReferralEventType, ReferralStatus
from .exceptions import (
    AlreadyReferredError,
    CapacityExceededError,
    InvalidStateError,
    InvalidTransferError,
    MilestoneOutOfRangeError,
    ReferralError,
    ReferralNotFoundError,
    SelfReferralError,
    StoreError,
    WriteConflictError,
)
from .milestones import EARNING_PER_TRANSFER, MAX_TRANSFERS, ordinal_label
from .models import Referral, ReferralUser, Transfer
from .progress import Milestone, ReferralProgress, compute_progress
from .service import ReferralService
from .state_machine import archive, classify, record_transfer
from .store import InMemoryReferralStore, ReferralStore

__all__ = [
    "EARNING_PER_TRANSFER",
    "MAX_TRANSFERS",
    "AlreadyReferredError",
    "CapacityExceededError",
    "InMemoryReferralStore",
    "InvalidStateError",
    "InvalidTransferError",
    "Milestone",
    "MilestoneOutOfRangeError",
    "Referral",
    "ReferralBucket",
    "ReferralError",
    "ReferralEventType",
    "ReferralNotFoundError",
    "ReferralProgress",
    "ReferralService",
    "ReferralStatus",
    "ReferralStore",
    "ReferralUser",
    "SelfReferralError",
    "StoreError",
    "Transfer",
    "WriteConflictError",
    "archive",
    "classify",
    "compute_progress",
    "ordinal_label",
    "record_transfer",
]
