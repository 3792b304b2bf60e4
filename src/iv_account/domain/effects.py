"""Ledger effect table: the one place that says what each kind does to a balance.

Incoming kinds credit the account when approved; outgoing kinds debit at
creation and are refunded when declined. Both ``decide`` and the investment
lifecycle consult this table instead of branching on the kind.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from src.iv_account.domain.models import TransactionRecord
from src.iv_common.enums import Decision, TransactionKind, TransactionStatus

CREDIT = 1
DEBIT = -1


class EffectAction(str, Enum):
    NONE = "NONE"
    CREDIT = "CREDIT"
    REFUND = "REFUND"


class AccountCounter(str, Enum):
    """Aggregate columns on ``accounts`` bumped alongside a credit."""
    TOTAL_PROFITS = "total_profits"
    REFERRAL_EARNINGS = "referral_earnings"


_CREDIT_APPLIED = frozenset({TransactionStatus.APPROVED, TransactionStatus.COMPLETED})
_DEBIT_APPLIED = frozenset(
    {TransactionStatus.PENDING, TransactionStatus.APPROVED, TransactionStatus.COMPLETED}
)


@dataclass(frozen=True)
class LedgerEffect:
    direction: int
    reviewable: bool
    admin_only: bool = False
    requires_proof: bool = False
    counter: AccountCounter | None = None

    @property
    def is_credit(self) -> bool:
        return self.direction == CREDIT

    @property
    def debits_on_create(self) -> bool:
        return self.direction == DEBIT

    def action_for(self, decision: Decision) -> EffectAction:
        if self.is_credit:
            return EffectAction.CREDIT if decision == Decision.APPROVE else EffectAction.NONE
        return EffectAction.REFUND if decision == Decision.DECLINE else EffectAction.NONE

    @property
    def applied_statuses(self) -> frozenset[TransactionStatus]:
        return _CREDIT_APPLIED if self.is_credit else _DEBIT_APPLIED

    def is_applied(self, status: TransactionStatus) -> bool:
        return status in self.applied_statuses


LEDGER_EFFECTS: dict[TransactionKind, LedgerEffect] = {
    TransactionKind.DEPOSIT: LedgerEffect(CREDIT, reviewable=True, requires_proof=True),
    TransactionKind.UPGRADE: LedgerEffect(CREDIT, reviewable=True, requires_proof=True),
    TransactionKind.REFERRAL_BONUS: LedgerEffect(
        CREDIT, reviewable=True, admin_only=True, counter=AccountCounter.REFERRAL_EARNINGS
    ),
    TransactionKind.WITHDRAWAL: LedgerEffect(DEBIT, reviewable=True),
    TransactionKind.INVESTMENT_FUNDING: LedgerEffect(DEBIT, reviewable=True),
    TransactionKind.INVESTMENT_PAYOUT: LedgerEffect(CREDIT, reviewable=False),
    TransactionKind.INVESTMENT_REFUND: LedgerEffect(CREDIT, reviewable=False),
    TransactionKind.PROFIT_TOPUP: LedgerEffect(
        CREDIT, reviewable=False, counter=AccountCounter.TOTAL_PROFITS
    ),
}


def effect_for(kind: TransactionKind | str) -> LedgerEffect:
    return LEDGER_EFFECTS[TransactionKind(kind)]


def signed_amount(record: TransactionRecord) -> int:
    """Contribution of one record to its account balance under ledger replay."""
    effect = effect_for(record.kind)
    if not effect.is_applied(record.status):
        return 0
    return effect.direction * record.amount


def replay_balance(records: Iterable[TransactionRecord]) -> int:
    return sum(signed_amount(r) for r in records)
