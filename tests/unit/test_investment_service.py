"""InvestmentService: open / complete / cancel and plan administration."""

import asyncio
from datetime import UTC, datetime, timedelta
from itertools import count
from unittest.mock import AsyncMock

import pytest

from src.iv_account.domain.effects import replay_balance
from src.iv_common.enums import ContractStatus, SettledBy, TransactionKind
from src.iv_common.errors import (
    AlreadyProcessedError,
    ContractNotFoundError,
    InsufficientFundsError,
    PlanExistsError,
    PlanNotFoundError,
    ValidationError,
)
from src.iv_investment.application.service import InvestmentService

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class Clock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def svc(ledger, investments, clock) -> InvestmentService:
    ids = count(1)
    return InvestmentService(
        ledger_repo=ledger,
        investment_repo=investments,
        clock=clock,
        id_factory=lambda: f"id-{next(ids)}",
    )


async def _fixed_plan(svc: InvestmentService, db, amount: int = 100, roi_bps: int = 1000):
    return await svc.create_plan(db, "Starter", amount, amount, roi_bps, 1)


def _payouts(ledger, contract_id: str) -> list:
    return [
        r
        for r in ledger.transactions.values()
        if r.kind == TransactionKind.INVESTMENT_PAYOUT and r.reference_id == contract_id
    ]


class TestOpenAndComplete:
    async def test_full_cycle_pays_principal_plus_roi_once(self, ledger, svc, clock, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)

        contract = await svc.open_investment(db, "acct-1", plan.id, 100)
        assert ledger.accounts["acct-1"].balance == 900
        assert contract.status == ContractStatus.ACTIVE
        assert contract.end_time == T0 + timedelta(hours=1)

        clock.now = T0 + timedelta(hours=1)
        completed = await svc.complete(db, contract.id, SettledBy.SCHEDULER)

        assert completed.status == ContractStatus.COMPLETED
        assert completed.settled_by == SettledBy.SCHEDULER
        assert ledger.accounts["acct-1"].balance == 1010
        payouts = _payouts(ledger, contract.id)
        assert len(payouts) == 1
        assert payouts[0].amount == 110
        assert payouts[0].details["settled_by"] == "SCHEDULER"
        assert payouts[0].details["roi_amount"] == 10
        assert replay_balance(ledger.records_for("acct-1")) == 110 - 100

    async def test_funding_record_links_contract(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)

        contract = await svc.open_investment(db, "acct-1", plan.id, 100)

        funding = ledger.transactions[contract.funding_transaction_id]
        assert funding.kind == TransactionKind.INVESTMENT_FUNDING
        assert funding.reference_id == contract.id

    async def test_amount_outside_range_no_side_effects(self, ledger, investments, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await svc.create_plan(db, "Range", 100, 500, 1000, 24)

        for bad in (99, 501):
            with pytest.raises(ValidationError):
                await svc.open_investment(db, "acct-1", plan.id, bad)

        assert ledger.accounts["acct-1"].balance == 1000
        assert investments.contracts == {}
        assert ledger.transactions == {}

    async def test_fixed_plan_rejects_other_amount(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        with pytest.raises(ValidationError):
            await svc.open_investment(db, "acct-1", plan.id, 150)

    async def test_insufficient_funds(self, ledger, investments, svc, db) -> None:
        ledger.seed("acct-1", balance=50)
        plan = await _fixed_plan(svc, db)
        with pytest.raises(InsufficientFundsError):
            await svc.open_investment(db, "acct-1", plan.id, 100)
        assert investments.contracts == {}

    async def test_unknown_plan(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        with pytest.raises(PlanNotFoundError):
            await svc.open_investment(db, "acct-1", "nope", 100)

    async def test_retired_plan_rejected(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        await svc.retire_plan(db, plan.id)
        with pytest.raises(ValidationError):
            await svc.open_investment(db, "acct-1", plan.id, 100)

    async def test_roi_frozen_at_open(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        contract = await svc.open_investment(db, "acct-1", plan.id, 100)

        await svc.update_plan(db, plan.id, roi_bps=5000, duration_hours=48)
        await svc.complete(db, contract.id)

        assert _payouts(ledger, contract.id)[0].amount == 110


class TestCompleteRaces:
    async def test_second_complete_already_processed(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        contract = await svc.open_investment(db, "acct-1", plan.id, 100)

        await svc.complete(db, contract.id)
        with pytest.raises(AlreadyProcessedError):
            await svc.complete(db, contract.id)

        assert len(_payouts(ledger, contract.id)) == 1

    async def test_scheduler_and_admin_race_single_payout(self, ledger, svc) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, AsyncMock())
        contract = await svc.open_investment(AsyncMock(), "acct-1", plan.id, 100)

        results = await asyncio.gather(
            svc.complete(AsyncMock(), contract.id, SettledBy.SCHEDULER),
            svc.complete(AsyncMock(), contract.id, SettledBy.ADMIN),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, AlreadyProcessedError)) == 1
        assert len(_payouts(ledger, contract.id)) == 1
        assert ledger.accounts["acct-1"].balance == 1010

    async def test_complete_unknown_contract(self, svc, db) -> None:
        with pytest.raises(ContractNotFoundError):
            await svc.complete(db, "ghost")
        db.rollback.assert_awaited_once()


class TestCancel:
    async def test_cancel_refunds_principal_only(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        contract = await svc.open_investment(db, "acct-1", plan.id, 100)

        cancelled = await svc.cancel(db, contract.id)

        assert cancelled.status == ContractStatus.CANCELLED
        assert ledger.accounts["acct-1"].balance == 1000
        refunds = [
            r for r in ledger.transactions.values() if r.kind == TransactionKind.INVESTMENT_REFUND
        ]
        assert [r.amount for r in refunds] == [100]

    async def test_cannot_complete_after_cancel(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        contract = await svc.open_investment(db, "acct-1", plan.id, 100)
        await svc.cancel(db, contract.id)

        with pytest.raises(AlreadyProcessedError):
            await svc.complete(db, contract.id)
        assert _payouts(ledger, contract.id) == []


class TestPlans:
    async def test_duplicate_name(self, svc, db) -> None:
        await svc.create_plan(db, "Gold", 100, 1000, 1500, 24)
        with pytest.raises(PlanExistsError):
            await svc.create_plan(db, "Gold", 100, 1000, 1500, 24)

    async def test_invalid_terms(self, svc, db) -> None:
        with pytest.raises(ValidationError):
            await svc.create_plan(db, "Bad", 500, 100, 1000, 24)
        with pytest.raises(ValidationError):
            await svc.create_plan(db, "Bad", 100, 500, 1000, 0)

    async def test_rename_clash(self, svc, db) -> None:
        await svc.create_plan(db, "Gold", 100, 1000, 1500, 24)
        silver = await svc.create_plan(db, "Silver", 100, 1000, 1000, 24)
        with pytest.raises(PlanExistsError):
            await svc.update_plan(db, silver.id, name="Gold")

    async def test_update_unknown_plan(self, svc, db) -> None:
        with pytest.raises(PlanNotFoundError):
            await svc.update_plan(db, "missing", roi_bps=10)

    async def test_list_active_only(self, svc, db) -> None:
        gold = await svc.create_plan(db, "Gold", 100, 1000, 1500, 24)
        await svc.create_plan(db, "Silver", 100, 1000, 1000, 24)
        await svc.retire_plan(db, gold.id)

        assert [p.name for p in await svc.list_plans(db)] == ["Silver"]
        assert len(await svc.list_plans(db, active_only=False)) == 2


class TestMaturedQuery:
    async def test_only_matured_active(self, ledger, svc, clock, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        early = await svc.open_investment(db, "acct-1", plan.id, 100)
        clock.now = T0 + timedelta(minutes=30)
        late = await svc.open_investment(db, "acct-1", plan.id, 100)

        clock.now = T0 + timedelta(hours=1)
        assert await svc.list_matured_contract_ids(db, 10) == [early.id]

        clock.now = T0 + timedelta(hours=2)
        assert await svc.list_matured_contract_ids(db, 10) == [early.id, late.id]

    async def test_already_attempted_ids_skipped(self, ledger, svc, clock, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        first = await svc.open_investment(db, "acct-1", plan.id, 100)
        second = await svc.open_investment(db, "acct-1", plan.id, 100)

        clock.now = T0 + timedelta(hours=1)
        assert await svc.list_matured_contract_ids(db, 10, skip_ids=[first.id]) == [second.id]


class TestGetContract:
    async def test_owner_and_unscoped_reads(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        contract = await svc.open_investment(db, "acct-1", plan.id, 100)

        assert (await svc.get_contract(db, contract.id, "acct-1")).id == contract.id
        assert (await svc.get_contract(db, contract.id)).id == contract.id

    async def test_other_owner_reads_as_missing(self, ledger, svc, db) -> None:
        ledger.seed("acct-1", balance=1000)
        plan = await _fixed_plan(svc, db)
        contract = await svc.open_investment(db, "acct-1", plan.id, 100)

        with pytest.raises(ContractNotFoundError):
            await svc.get_contract(db, contract.id, "acct-2")

    async def test_unknown_contract(self, svc, db) -> None:
        with pytest.raises(ContractNotFoundError):
            await svc.get_contract(db, "ghost")
