"""Pydantic schemas and cursor utilities for iv_account API."""

import base64
import json
from typing import Any

from pydantic import BaseModel, Field

from src.iv_account.domain.models import Account, TransactionRecord
from src.iv_common.cents import cents_to_display

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    referred_by: str | None = Field(
        None, min_length=1, max_length=16, description="Referral code of the inviting account"
    )


class ProfitTopUpRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Profit to credit in cents")
    notes: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    account_id: str
    balance_cents: int
    balance_display: str
    total_profits_cents: int
    total_profits_display: str
    referral_earnings_cents: int
    referral_earnings_display: str
    referral_code: str
    referred_by: str | None

    @classmethod
    def from_domain(cls, account: Account) -> "BalanceResponse":
        return cls(
            account_id=account.id,
            balance_cents=account.balance,
            balance_display=cents_to_display(account.balance),
            total_profits_cents=account.total_profits,
            total_profits_display=cents_to_display(account.total_profits),
            referral_earnings_cents=account.referral_earnings,
            referral_earnings_display=cents_to_display(account.referral_earnings),
            referral_code=account.referral_code,
            referred_by=account.referred_by,
        )


class TransactionItem(BaseModel):
    id: int
    account_id: str
    kind: str
    amount_cents: int
    amount_display: str
    status: str
    details: dict[str, Any]
    reference_id: str | None
    created_at: str           # ISO8601 string
    decided_at: str | None

    @classmethod
    def from_domain(cls, record: TransactionRecord) -> "TransactionItem":
        return cls(
            id=record.id,
            account_id=record.account_id,
            kind=record.kind.value,
            amount_cents=record.amount,
            amount_display=cents_to_display(record.amount),
            status=record.status.value,
            details=record.details,
            reference_id=record.reference_id,
            created_at=record.created_at.isoformat() if record.created_at else "",
            decided_at=record.decided_at.isoformat() if record.decided_at else None,
        )


class LedgerResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool
