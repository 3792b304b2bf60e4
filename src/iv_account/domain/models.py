"""Domain models for iv_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.iv_common.enums import TransactionKind, TransactionStatus


@dataclass
class Account:
    id: str
    balance: int               # cents
    total_profits: int         # cents
    referral_earnings: int     # cents
    referral_code: str
    referred_by: str | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TransactionRecord:
    """One ledger entry. Immutable except for ``status`` (and the refund stamp)."""

    id: int                              # BIGSERIAL
    account_id: str
    kind: TransactionKind
    amount: int                          # cents, always positive magnitude
    status: TransactionStatus
    details: dict[str, Any] = field(default_factory=dict)
    reference_id: str | None = None      # contract id / referral edge id
    created_at: datetime | None = None
    decided_at: datetime | None = None
    refunded_at: datetime | None = None
