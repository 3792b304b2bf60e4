"""Referral domain model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ReferralEdge:
    """One-shot record that a referrer was credited for a referred account."""

    id: int
    referrer_account_id: str
    referred_account_id: str
    bonus_amount: int  # cents
    awarded_at: datetime | None = None
