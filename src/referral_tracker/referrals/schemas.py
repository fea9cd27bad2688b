from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .enums import ReferralBucket, ReferralStatus
from .milestones import MAX_TRANSFERS
from .models import Referral, Transfer
from .progress import ReferralProgress, compute_progress
from .state_machine import classify


class TransferEvent(BaseModel):
    """Inbound notification that a referred user completed a transfer."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    referral_user_identifier: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices(
            "referral_user_identifier", "referralUserIdentifier", "userId", "user_id"
        ),
        description="Identifier of the referred user who made the transfer",
    )
    transfer_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("transfer_id", "transferId"),
    )
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    completed_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.UTC),
        validation_alias=AliasChoices("completed_at", "completedAt"),
    )

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v: Any) -> Any:
        """Accept string amounts as sent by most webhook providers."""
        if isinstance(v, str):
            return Decimal(v)
        return v

    def to_transfer(self) -> Transfer:
        return Transfer(
            id=self.transfer_id,
            amount=self.amount,
            currency=self.currency,
            completed_at=self.completed_at,
        )


class MilestoneView(BaseModel):
    index: int
    label: str
    active: bool


class ProgressView(BaseModel):
    """Progress indicator state for one referral."""

    transfer_count: int = Field(..., ge=0, le=MAX_TRANSFERS)
    active_milestone_count: int = Field(..., ge=1, le=MAX_TRANSFERS + 1)
    fill_ratio: float = Field(..., ge=0.0, le=1.0)
    next_milestone_label: str
    is_joined_active: bool = True
    is_complete: bool
    milestones: list[MilestoneView]

    @classmethod
    def from_progress(cls, progress: ReferralProgress) -> ProgressView:
        return cls(
            transfer_count=progress.transfer_count,
            active_milestone_count=progress.active_milestone_count,
            fill_ratio=progress.fill_ratio,
            next_milestone_label=progress.next_milestone_label,
            is_joined_active=progress.is_joined_active,
            is_complete=progress.is_complete,
            milestones=[
                MilestoneView(
                    index=milestone.index,
                    label=milestone.label,
                    active=milestone.active,
                )
                for milestone in progress.milestones
            ],
        )


class ReferralView(BaseModel):
    """Referral as rendered in the active and completed lists."""

    id: str = Field(..., description="Referral ID")
    referrer_id: str
    referral_id: str = Field(..., description="Referred user ID")
    name: str | None = Field(None, description="Referred user's display name")
    promo_code: str | None = None
    transfer_count: int
    total_earnings: int
    status: ReferralStatus
    bucket: ReferralBucket | None
    created_at: dt.datetime
    updated_at: dt.datetime
    progress: ProgressView

    @classmethod
    def from_referral(cls, referral: Referral) -> ReferralView:
        user = referral.referral_user
        return cls(
            id=referral.id,
            referrer_id=referral.referrer_id,
            referral_id=referral.referral_id,
            name=user.display_name if user is not None else None,
            promo_code=referral.promo_code,
            transfer_count=referral.transfer_count,
            total_earnings=referral.total_earnings,
            status=referral.status,
            bucket=classify(referral),
            created_at=referral.created_at,
            updated_at=referral.updated_at,
            progress=ProgressView.from_progress(
                compute_progress(referral.transfer_count)
            ),
        )


class ReferralListResponse(BaseModel):
    """Envelope for a referrer's active or completed referrals."""

    success: bool = True
    data: list[ReferralView] = Field(default_factory=list)
    count: int = Field(0, ge=0)

    @classmethod
    def from_referrals(cls, referrals: Sequence[Referral]) -> ReferralListResponse:
        views = [ReferralView.from_referral(referral) for referral in referrals]
        return cls(data=views, count=len(views))
