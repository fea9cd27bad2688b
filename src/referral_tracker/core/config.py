from __future__ import annotations

import uuid
from enum import StrEnum
from functools import lru_cache

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from referral_tracker.core.constants import (
    DEFAULT_CHANNEL_PREFIX,
    DEFAULT_ENV_FILE,
    SECRETS_DIR,
    SERVICE_NAME,
)


class Environment(StrEnum):
    """Deployment environments supported by the service."""

    DEVELOPMENT = "development"
    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "production"


class RedisSettings(BaseModel):
    """Redis connection used to fan out referral change events."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices(
            "REDIS__URL", "redis__url", "REDIS_URL", "redis_url", "url"
        ),
    )
    channel_prefix: str = Field(
        default=DEFAULT_CHANNEL_PREFIX,
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices(
            "REDIS__CHANNEL_PREFIX",
            "redis__channel_prefix",
            "channel_prefix",
        ),
    )
    state_ttl_seconds: int = Field(
        default=3_600,
        ge=60,
        validation_alias=AliasChoices(
            "REDIS__STATE_TTL_SECONDS",
            "redis__state_ttl_seconds",
            "state_ttl_seconds",
        ),
    )


class ReferralSettings(BaseModel):
    """Behavioural switches for the referral engine's collaborators."""

    model_config = ConfigDict(extra="ignore")

    broadcast_enabled: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "REFERRALS__BROADCAST_ENABLED",
            "referrals__broadcast_enabled",
            "broadcast_enabled",
        ),
    )
    demo_referrer_id: uuid.UUID = Field(
        default=uuid.UUID("550e8400-e29b-41d4-a716-446655440000"),
        validation_alias=AliasChoices(
            "REFERRALS__DEMO_REFERRER_ID",
            "referrals__demo_referrer_id",
            "demo_referrer_id",
        ),
    )
    seed_demo_data: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "REFERRALS__SEED_DEMO_DATA",
            "referrals__seed_demo_data",
            "seed_demo_data",
        ),
    )


class Settings(BaseSettings):
    """Application settings loaded from the environment or secret stores."""

    model_config = SettingsConfigDict(
        env_file=DEFAULT_ENV_FILE,
        env_nested_delimiter="__",
        secrets_dir=SECRETS_DIR,
        extra="ignore",
        validate_default=True,
        case_sensitive=False,
    )

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False
    log_level: str = "INFO"
    service_name: str = SERVICE_NAME

    redis: RedisSettings = Field(default_factory=RedisSettings)
    referrals: ReferralSettings = Field(default_factory=ReferralSettings)

    @model_validator(mode="after")
    def _normalize(self) -> Settings:
        self.log_level = self.log_level.upper()

        if self.environment in {Environment.DEVELOPMENT, Environment.TEST}:
            self.debug = True

        return self

    @computed_field
    @property
    def is_testing(self) -> bool:
        return self.environment is Environment.TEST

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment is Environment.PRODUCTION


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()
