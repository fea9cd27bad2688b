from __future__ import annotations

from typing import Protocol

import structlog

from .models import Referral


class CompletionNotifier(Protocol):
    """Receives a referral the first time it reaches its final milestone."""

    async def on_completed(self, referral: Referral) -> None:
        """Dispatch the completion downstream (email, payout, webhook, etc.)"""


class LoggingCompletionNotifier:
    """Default notifier that logs completions in lieu of an external integration."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(__name__)

    async def on_completed(self, referral: Referral) -> None:
        self._logger.info(
            "referral_completed",
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
            transfer_count=referral.transfer_count,
            total_earnings=referral.total_earnings,
        )
