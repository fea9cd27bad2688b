"""Referral milestone tracking: progress, earnings and completion."""

from __future__ import annotations

__version__ = "0.1.0"
