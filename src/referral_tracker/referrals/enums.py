from enum import StrEnum


class ReferralStatus(StrEnum):
    """Lifecycle status of a referral."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"  # Terminal, set administratively after completion


class ReferralBucket(StrEnum):
    """Listing bucket a referral is shown in."""

    ACTIVE = "active"
    COMPLETED = "completed"


class ReferralEventType(StrEnum):
    """Kinds of change published on the referral event channel."""

    CREATED = "created"
    TRANSFER_RECORDED = "transfer_recorded"
    COMPLETED = "completed"
    ARCHIVED = "archived"
