"""In-memory repositories for service-level and concurrency tests.

They honour the same contracts as the SQL repositories: balance changes and
status transitions are conditional and atomic (an asyncio.Lock stands in for
the single UPDATE statement), and nothing here commits. ``asyncio.sleep(0)``
before each critical section lets concurrent callers interleave.
"""

import asyncio
from collections.abc import Sequence
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.iv_account.domain.effects import AccountCounter, effect_for
from src.iv_account.domain.models import Account, TransactionRecord
from src.iv_common.enums import ContractStatus, SettledBy, TransactionKind, TransactionStatus
from src.iv_common.errors import (
    AccountNotFoundError,
    AlreadyProcessedError,
    InsufficientFundsError,
    InternalError,
    TransactionNotFoundError,
    ValidationError,
)
from src.iv_investment.domain.models import InvestmentContract, InvestmentPlan
from src.iv_referral.domain.models import ReferralEdge


class InMemoryLedger:
    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.transactions: dict[int, TransactionRecord] = {}
        self._next_tx_id = 1
        self._lock = asyncio.Lock()

    def seed(self, account_id: str, balance: int = 0, code: str | None = None) -> Account:
        account = Account(
            id=account_id,
            balance=balance,
            total_profits=0,
            referral_earnings=0,
            referral_code=code or f"CODE{len(self.accounts):04d}",
        )
        self.accounts[account_id] = account
        return account

    def records_for(self, account_id: str) -> list[TransactionRecord]:
        return [r for r in self.transactions.values() if r.account_id == account_id]

    async def get_account(self, db: Any, account_id: str) -> Account | None:
        account = self.accounts.get(account_id)
        return replace(account) if account else None

    async def get_account_by_referral_code(self, db: Any, referral_code: str) -> Account | None:
        for account in self.accounts.values():
            if account.referral_code == referral_code:
                return replace(account)
        return None

    async def create_account(
        self, db: Any, account_id: str, referral_code: str, referred_by: str | None
    ) -> Account | None:
        async with self._lock:
            if account_id in self.accounts:
                return None
            account = Account(account_id, 0, 0, 0, referral_code, referred_by)
            self.accounts[account_id] = account
            return replace(account)

    async def credit(
        self,
        db: Any,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        status: TransactionStatus,
        details: dict[str, Any],
        reference_id: str | None = None,
    ) -> tuple[Account, TransactionRecord]:
        _require_positive(amount)
        effect = effect_for(kind)
        if not effect.is_credit or not effect.is_applied(status):
            raise InternalError(f"credit() called with {kind.value}/{status.value}")
        await asyncio.sleep(0)
        async with self._lock:
            account = self._adjust(account_id, amount, effect.counter)
            record = self._insert(account_id, amount, kind, status, details, reference_id)
            return replace(account), replace(record)

    async def debit(
        self,
        db: Any,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        status: TransactionStatus,
        details: dict[str, Any],
        reference_id: str | None = None,
    ) -> tuple[Account, TransactionRecord]:
        _require_positive(amount)
        effect = effect_for(kind)
        if effect.is_credit or not effect.is_applied(status):
            raise InternalError(f"debit() called with {kind.value}/{status.value}")
        await asyncio.sleep(0)
        async with self._lock:
            account = self.accounts.get(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            if account.balance < amount:
                raise InsufficientFundsError(amount, account.balance)
            account.balance -= amount
            record = self._insert(account_id, amount, kind, status, details, reference_id)
            return replace(account), replace(record)

    async def insert_pending(
        self,
        db: Any,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        details: dict[str, Any],
    ) -> TransactionRecord:
        _require_positive(amount)
        if account_id not in self.accounts:
            raise AccountNotFoundError(account_id)
        async with self._lock:
            record = self._insert(
                account_id, amount, kind, TransactionStatus.PENDING, details, None
            )
            return replace(record)

    async def get_transaction(self, db: Any, transaction_id: int) -> TransactionRecord | None:
        record = self.transactions.get(transaction_id)
        return replace(record) if record else None

    async def transition_status(
        self, db: Any, transaction_id: int, new_status: TransactionStatus
    ) -> TransactionRecord | None:
        await asyncio.sleep(0)
        async with self._lock:
            record = self.transactions.get(transaction_id)
            if record is None or record.status != TransactionStatus.PENDING:
                return None
            record.status = new_status
            record.decided_at = datetime.now(UTC)
            return replace(record)

    async def apply_credit(self, db: Any, record: TransactionRecord) -> Account:
        async with self._lock:
            account = self._adjust(record.account_id, record.amount, effect_for(record.kind).counter)
            return replace(account)

    async def refund(self, db: Any, transaction_id: int) -> tuple[Account, TransactionRecord]:
        async with self._lock:
            record = self.transactions.get(transaction_id)
            if record is None:
                raise TransactionNotFoundError(transaction_id)
            if (
                record.status != TransactionStatus.DECLINED
                or record.refunded_at is not None
                or not effect_for(record.kind).debits_on_create
            ):
                raise AlreadyProcessedError(f"Refund of transaction {transaction_id}")
            record.refunded_at = datetime.now(UTC)
            account = self._adjust(record.account_id, record.amount, None)
            return replace(account), replace(record)

    async def list_transactions(
        self,
        db: Any,
        account_id: str | None,
        cursor_id: int | None,
        limit: int,
        kind: str | None,
        status: str | None,
    ) -> list[TransactionRecord]:
        rows = [
            r
            for r in sorted(self.transactions.values(), key=lambda r: r.id, reverse=True)
            if (account_id is None or r.account_id == account_id)
            and (cursor_id is None or r.id < cursor_id)
            and (kind is None or r.kind.value == kind)
            and (status is None or r.status.value == status)
        ]
        return [replace(r) for r in rows[:limit]]

    def _adjust(self, account_id: str, amount: int, counter: AccountCounter | None) -> Account:
        account = self.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        account.balance += amount
        if counter is not None:
            setattr(account, counter.value, getattr(account, counter.value) + amount)
        return account

    def _insert(
        self,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        status: TransactionStatus,
        details: dict[str, Any],
        reference_id: str | None,
    ) -> TransactionRecord:
        record = TransactionRecord(
            id=self._next_tx_id,
            account_id=account_id,
            kind=kind,
            amount=amount,
            status=status,
            details=dict(details),
            reference_id=reference_id,
            created_at=datetime.now(UTC),
        )
        self.transactions[record.id] = record
        self._next_tx_id += 1
        return record


class InMemoryInvestments:
    def __init__(self) -> None:
        self.plans: dict[str, InvestmentPlan] = {}
        self.contracts: dict[str, InvestmentContract] = {}
        self._lock = asyncio.Lock()

    async def create_plan(self, db: Any, plan: InvestmentPlan) -> InvestmentPlan | None:
        if any(p.name == plan.name for p in self.plans.values()):
            return None
        self.plans[plan.id] = replace(plan)
        return replace(plan)

    async def get_plan(self, db: Any, plan_id: str) -> InvestmentPlan | None:
        plan = self.plans.get(plan_id)
        return replace(plan) if plan else None

    async def get_plan_by_name(self, db: Any, name: str) -> InvestmentPlan | None:
        for plan in self.plans.values():
            if plan.name == name:
                return replace(plan)
        return None

    async def update_plan(self, db: Any, plan: InvestmentPlan) -> InvestmentPlan | None:
        if plan.id not in self.plans:
            return None
        self.plans[plan.id] = replace(plan)
        return replace(plan)

    async def list_plans(self, db: Any, active_only: bool) -> list[InvestmentPlan]:
        return [replace(p) for p in self.plans.values() if p.is_active or not active_only]

    async def insert_contract(self, db: Any, contract: InvestmentContract) -> InvestmentContract:
        self.contracts[contract.id] = replace(contract)
        return replace(contract)

    async def get_contract(self, db: Any, contract_id: str) -> InvestmentContract | None:
        contract = self.contracts.get(contract_id)
        return replace(contract) if contract else None

    async def transition_contract(
        self,
        db: Any,
        contract_id: str,
        new_status: ContractStatus,
        settled_by: SettledBy,
        settled_at: datetime,
    ) -> InvestmentContract | None:
        await asyncio.sleep(0)
        async with self._lock:
            contract = self.contracts.get(contract_id)
            if contract is None or contract.status != ContractStatus.ACTIVE:
                return None
            contract.status = new_status
            contract.settled_by = settled_by
            contract.settled_at = settled_at
            return replace(contract)

    async def list_contracts(
        self, db: Any, account_id: str | None, status: str | None, limit: int
    ) -> list[InvestmentContract]:
        rows = [
            c
            for c in self.contracts.values()
            if (account_id is None or c.account_id == account_id)
            and (status is None or c.status.value == status)
        ]
        return [replace(c) for c in rows[:limit]]

    async def list_matured_contract_ids(
        self, db: Any, now: datetime, limit: int, skip_ids: Sequence[str] = ()
    ) -> list[str]:
        matured = sorted(
            (c for c in self.contracts.values()
             if c.status == ContractStatus.ACTIVE and c.end_time <= now and c.id not in skip_ids),
            key=lambda c: (c.end_time, c.id),
        )
        return [c.id for c in matured[:limit]]


class InMemoryReferrals:
    def __init__(self) -> None:
        self.edges: dict[str, ReferralEdge] = {}
        self._lock = asyncio.Lock()

    async def insert_if_absent(
        self, db: Any, referrer_account_id: str, referred_account_id: str, bonus_amount: int
    ) -> ReferralEdge | None:
        await asyncio.sleep(0)
        async with self._lock:
            if referred_account_id in self.edges:
                return None
            edge = ReferralEdge(
                id=len(self.edges) + 1,
                referrer_account_id=referrer_account_id,
                referred_account_id=referred_account_id,
                bonus_amount=bonus_amount,
                awarded_at=datetime.now(UTC),
            )
            self.edges[referred_account_id] = edge
            return replace(edge)

    async def list_all(self, db: Any, limit: int) -> list[ReferralEdge]:
        newest = sorted(self.edges.values(), key=lambda e: e.id, reverse=True)
        return [replace(e) for e in newest[:limit]]

    async def list_by_referrer(self, db: Any, referrer_account_id: str) -> list[ReferralEdge]:
        return [
            replace(e) for e in self.edges.values() if e.referrer_account_id == referrer_account_id
        ]


class FakeSessionFactory:
    """Stands in for async_sessionmaker: each call yields a fresh AsyncMock session."""

    def __init__(self) -> None:
        self.sessions: list[AsyncMock] = []

    @asynccontextmanager
    async def __call__(self):  # type: ignore[no-untyped-def]
        session = AsyncMock()
        self.sessions.append(session)
        yield session


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise ValidationError(f"Amount must be positive, got {amount}")


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def investments() -> InMemoryInvestments:
    return InMemoryInvestments()


@pytest.fixture
def referrals() -> InMemoryReferrals:
    return InMemoryReferrals()


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()
