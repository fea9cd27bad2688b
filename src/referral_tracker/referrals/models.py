from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .enums import ReferralStatus
from .milestones import EARNING_PER_TRANSFER, MAX_TRANSFERS


def _utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.UTC)
    return value.astimezone(dt.UTC)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class _DomainModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ReferralUser(_DomainModel):
    """Profile of the referred user shown next to their progress."""

    id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    registration_date: dt.datetime

    @field_validator("registration_date")
    @classmethod
    def _normalise_registration_date(cls, value: dt.datetime) -> dt.datetime:
        return _utc(value)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Transfer(_DomainModel):
    """A completed money transfer attributed to a referral."""

    id: str = Field(..., min_length=1, max_length=128)
    amount: Decimal = Field(..., gt=Decimal("0"))
    currency: str = Field(..., min_length=3, max_length=3)
    completed_at: dt.datetime
    referral_earning: int = Field(default=EARNING_PER_TRANSFER, ge=0)

    @field_validator("currency")
    @classmethod
    def _normalise_currency(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return value.upper()

    @field_validator("completed_at")
    @classmethod
    def _normalise_completed_at(cls, value: dt.datetime) -> dt.datetime:
        return _utc(value)


class Referral(_DomainModel):
    """One referred user's relationship to one referrer.

    Earnings and the transfer list are always derivable from
    ``transfer_count``. Status is validated only by the state machine: a
    record whose status lags its count can still be loaded and classified.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)
    referrer_id: str = Field(..., min_length=1)
    referral_id: str = Field(..., min_length=1)
    referral_user: ReferralUser | None = None
    promo_code: str | None = Field(default=None, min_length=6, max_length=20)
    transfer_count: int = Field(default=0, ge=0, le=MAX_TRANSFERS)
    total_earnings: int = Field(default=0, ge=0)
    status: ReferralStatus = ReferralStatus.ACTIVE
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)
    transfers: tuple[Transfer, ...] = ()
    version: int = Field(default=0, ge=0)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalise_timestamps(cls, value: dt.datetime) -> dt.datetime:
        return _utc(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> Referral:
        if self.total_earnings != self.transfer_count * EARNING_PER_TRANSFER:
            raise ValueError(
                "total_earnings must equal transfer_count * "
                f"{EARNING_PER_TRANSFER}"
            )
        if len(self.transfers) != self.transfer_count:
            raise ValueError("transfers must hold exactly transfer_count entries")
        if len({transfer.id for transfer in self.transfers}) != len(self.transfers):
            raise ValueError("transfer ids must be unique within a referral")
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot precede created_at")
        return self

    @classmethod
    def register(
        cls,
        *,
        referrer_id: str,
        referral_id: str,
        referral_user: ReferralUser | None = None,
        promo_code: str | None = None,
        now: dt.datetime | None = None,
    ) -> Referral:
        """Create the record for a freshly registered referred user."""

        created_at = _utc(now) if now is not None else utcnow()
        return cls(
            referrer_id=referrer_id,
            referral_id=referral_id,
            referral_user=referral_user,
            promo_code=promo_code,
            created_at=created_at,
            updated_at=created_at,
        )

    def has_transfer(self, transfer_id: str) -> bool:
        return any(transfer.id == transfer_id for transfer in self.transfers)
