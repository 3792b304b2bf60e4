"""Ledger events handed to the notification sink after a commit."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class LedgerEvent:
    event_type: str            # e.g. "REQUEST_CREATED", "REQUEST_APPROVED", "INVESTMENT_COMPLETED"
    account_id: str
    amount: int                # cents
    reference_id: str | None = None
    status: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)
