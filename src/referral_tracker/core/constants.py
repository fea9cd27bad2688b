"""Global constants for the referral tracker."""

from __future__ import annotations

SERVICE_NAME = "referral-tracker"
DEFAULT_ENV_FILE = ".env"
SECRETS_DIR = "/run/secrets"
REFERRAL_ID_CTX_KEY = "referral_id"
DEFAULT_CHANNEL_PREFIX = "referrals"
