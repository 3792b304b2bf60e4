"""Global enums: must match DB CHECK constraints exactly.

Ref: alembic/versions/003_create_transactions.py, 005_create_investment_contracts.py
"""

from enum import Enum


class TransactionKind(str, Enum):
    # Incoming (credit)
    DEPOSIT = "DEPOSIT"
    UPGRADE = "UPGRADE"
    REFERRAL_BONUS = "REFERRAL_BONUS"
    INVESTMENT_PAYOUT = "INVESTMENT_PAYOUT"
    INVESTMENT_REFUND = "INVESTMENT_REFUND"
    PROFIT_TOPUP = "PROFIT_TOPUP"
    # Outgoing (debit)
    WITHDRAWAL = "WITHDRAWAL"
    INVESTMENT_FUNDING = "INVESTMENT_FUNDING"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    COMPLETED = "COMPLETED"


class Decision(str, Enum):
    APPROVE = "APPROVE"
    DECLINE = "DECLINE"


class ContractStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SettledBy(str, Enum):
    """Who drove a contract to its terminal state."""
    SCHEDULER = "SCHEDULER"
    ADMIN = "ADMIN"


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
