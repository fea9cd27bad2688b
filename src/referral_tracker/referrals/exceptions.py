"""Referral module exceptions."""


class ReferralError(Exception):
    """Base exception for referral module."""


class InvalidStateError(ReferralError):
    """Raised when a transition is not allowed from the referral's status."""


class CapacityExceededError(ReferralError):
    """Raised when a referral already holds the maximum number of transfers."""


class InvalidTransferError(ReferralError, ValueError):
    """Raised when a transfer cannot belong to the referral it targets."""


class MilestoneOutOfRangeError(ReferralError, ValueError):
    """Raised when a milestone index or transfer count is outside 0..12."""


class StoreError(ReferralError):
    """Base class for failures reported by a referral store."""


class ReferralNotFoundError(StoreError):
    """Raised when a referral is not found."""


class WriteConflictError(StoreError):
    """Raised when a save races with another write to the same referral."""


class SelfReferralError(ReferralError):
    """Raised when trying to refer oneself."""


class AlreadyReferredError(ReferralError):
    """Raised when the referred user already belongs to another referrer."""
