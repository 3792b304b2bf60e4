"""InvestmentService: plan administration and the contract lifecycle.

open:     debit principal (INVESTMENT_FUNDING, COMPLETED) + insert ACTIVE contract
complete: CAS ACTIVE -> COMPLETED, then credit principal + ROI (INVESTMENT_PAYOUT)
cancel:   CAS ACTIVE -> CANCELLED, then credit principal only (INVESTMENT_REFUND)

The CAS is what makes the scheduler and the admin path safe to race: the
loser gets zero rows back and raises AlreadyProcessedError before touching
the ledger. Each mutating call is one DB transaction owned by this service.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.domain.repository import LedgerRepositoryProtocol
from src.iv_account.infrastructure.persistence import LedgerRepository
from src.iv_common.datetime_utils import add_hours, utc_now
from src.iv_common.enums import ContractStatus, SettledBy, TransactionKind, TransactionStatus
from src.iv_common.errors import (
    AlreadyProcessedError,
    ContractNotFoundError,
    PlanExistsError,
    PlanNotFoundError,
    ValidationError,
)
from src.iv_common.id_generator import generate_id
from src.iv_investment.domain.models import (
    InvestmentContract,
    InvestmentPlan,
    validate_plan_terms,
)
from src.iv_investment.domain.repository import InvestmentRepositoryProtocol
from src.iv_investment.infrastructure.persistence import InvestmentRepository
from src.iv_notify.events import LedgerEvent
from src.iv_notify.sinks import NotificationSink, notify_best_effort

logger = logging.getLogger(__name__)


class InvestmentService:
    def __init__(
        self,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        investment_repo: InvestmentRepositoryProtocol | None = None,
        notifier: NotificationSink | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._repo: InvestmentRepositoryProtocol = investment_repo or InvestmentRepository()
        self._notifier = notifier
        self._clock = clock
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    async def create_plan(
        self,
        db: AsyncSession,
        name: str,
        min_amount: int,
        max_amount: int,
        roi_bps: int,
        duration_hours: int,
    ) -> InvestmentPlan:
        validate_plan_terms(name, min_amount, max_amount, roi_bps, duration_hours)
        plan = InvestmentPlan(
            id=self._id_factory(),
            name=name.strip(),
            min_amount=min_amount,
            max_amount=max_amount,
            roi_bps=roi_bps,
            duration_hours=duration_hours,
        )
        try:
            created = await self._repo.create_plan(db, plan)
            if created is None:
                raise PlanExistsError(plan.name)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Plan created: %s %s roi_bps=%d", created.id, created.name, created.roi_bps)
        return created

    async def update_plan(
        self,
        db: AsyncSession,
        plan_id: str,
        name: str | None = None,
        min_amount: int | None = None,
        max_amount: int | None = None,
        roi_bps: int | None = None,
        duration_hours: int | None = None,
        is_active: bool | None = None,
    ) -> InvestmentPlan:
        """Partial update. Live contracts keep the terms they were opened with."""
        try:
            current = await self._repo.get_plan(db, plan_id)
            if current is None:
                raise PlanNotFoundError(plan_id)
            updated = replace(
                current,
                name=name.strip() if name is not None else current.name,
                min_amount=min_amount if min_amount is not None else current.min_amount,
                max_amount=max_amount if max_amount is not None else current.max_amount,
                roi_bps=roi_bps if roi_bps is not None else current.roi_bps,
                duration_hours=(
                    duration_hours if duration_hours is not None else current.duration_hours
                ),
                is_active=is_active if is_active is not None else current.is_active,
            )
            validate_plan_terms(
                updated.name,
                updated.min_amount,
                updated.max_amount,
                updated.roi_bps,
                updated.duration_hours,
            )
            if updated.name != current.name:
                clash = await self._repo.get_plan_by_name(db, updated.name)
                if clash is not None and clash.id != plan_id:
                    raise PlanExistsError(updated.name)
            saved = await self._repo.update_plan(db, updated)
            if saved is None:
                raise PlanNotFoundError(plan_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Plan updated: %s", plan_id)
        return saved

    async def retire_plan(self, db: AsyncSession, plan_id: str) -> InvestmentPlan:
        return await self.update_plan(db, plan_id, is_active=False)

    async def get_plan(self, db: AsyncSession, plan_id: str) -> InvestmentPlan:
        plan = await self._repo.get_plan(db, plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    async def list_plans(self, db: AsyncSession, active_only: bool = True) -> list[InvestmentPlan]:
        return await self._repo.list_plans(db, active_only)

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    async def open_investment(
        self, db: AsyncSession, account_id: str, plan_id: str, amount: int
    ) -> InvestmentContract:
        try:
            plan = await self._repo.get_plan(db, plan_id)
            if plan is None:
                raise PlanNotFoundError(plan_id)
            if not plan.is_active:
                raise ValidationError(f"Plan {plan.name} is retired")
            plan.validate_amount(amount)

            contract_id = self._id_factory()
            now = self._clock()
            _, funding = await self._ledger.debit(
                db,
                account_id,
                amount,
                TransactionKind.INVESTMENT_FUNDING,
                TransactionStatus.COMPLETED,
                {"plan_id": plan.id, "plan_name": plan.name, "contract_id": contract_id},
                reference_id=contract_id,
            )
            contract = await self._repo.insert_contract(
                db,
                InvestmentContract(
                    id=contract_id,
                    account_id=account_id,
                    plan_id=plan.id,
                    principal=amount,
                    roi_bps=plan.roi_bps,
                    start_time=now,
                    end_time=add_hours(now, plan.duration_hours),
                    funding_transaction_id=funding.id,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Contract %s opened: %s plan=%s principal=%d matures=%s",
            contract.id,
            account_id,
            plan.id,
            amount,
            contract.end_time.isoformat(),
        )
        await notify_best_effort(
            self._notifier, _event("INVESTMENT_OPENED", contract, contract.principal)
        )
        return contract

    async def complete(
        self,
        db: AsyncSession,
        contract_id: str,
        settled_by: SettledBy = SettledBy.ADMIN,
    ) -> InvestmentContract:
        """Settle at maturity (scheduler) or early (admin). Exactly one payout."""
        try:
            contract = await self._transition(
                db, contract_id, ContractStatus.COMPLETED, settled_by
            )
            await self._ledger.credit(
                db,
                contract.account_id,
                contract.payout,
                TransactionKind.INVESTMENT_PAYOUT,
                TransactionStatus.COMPLETED,
                {
                    "settled_by": settled_by.value,
                    "plan_id": contract.plan_id,
                    "principal": contract.principal,
                    "roi_amount": contract.roi_amount,
                },
                reference_id=contract.id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Contract %s completed by %s: payout=%d", contract.id, settled_by.value, contract.payout
        )
        await notify_best_effort(
            self._notifier, _event("INVESTMENT_COMPLETED", contract, contract.payout)
        )
        return contract

    async def cancel(self, db: AsyncSession, contract_id: str) -> InvestmentContract:
        """Return the principal only; no ROI is paid on a cancelled contract."""
        try:
            contract = await self._transition(
                db, contract_id, ContractStatus.CANCELLED, SettledBy.ADMIN
            )
            await self._ledger.credit(
                db,
                contract.account_id,
                contract.principal,
                TransactionKind.INVESTMENT_REFUND,
                TransactionStatus.COMPLETED,
                {"plan_id": contract.plan_id, "principal": contract.principal},
                reference_id=contract.id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Contract %s cancelled: refund=%d", contract.id, contract.principal)
        await notify_best_effort(
            self._notifier, _event("INVESTMENT_CANCELLED", contract, contract.principal)
        )
        return contract

    async def get_contract(
        self, db: AsyncSession, contract_id: str, account_id: str | None = None
    ) -> InvestmentContract:
        """Fetch a contract; with ``account_id``, another owner's contract reads as missing."""
        contract = await self._repo.get_contract(db, contract_id)
        if contract is None or (account_id is not None and contract.account_id != account_id):
            raise ContractNotFoundError(contract_id)
        return contract

    async def list_contracts(
        self,
        db: AsyncSession,
        account_id: str | None,
        status: str | None,
        limit: int = 100,
    ) -> list[InvestmentContract]:
        return await self._repo.list_contracts(db, account_id, status, limit)

    async def list_matured_contract_ids(
        self,
        db: AsyncSession,
        limit: int,
        now: datetime | None = None,
        skip_ids: Sequence[str] = (),
    ) -> list[str]:
        """ACTIVE contracts whose end_time has passed, oldest maturity first."""
        return await self._repo.list_matured_contract_ids(
            db, now or self._clock(), limit, skip_ids
        )

    async def _transition(
        self,
        db: AsyncSession,
        contract_id: str,
        new_status: ContractStatus,
        settled_by: SettledBy,
    ) -> InvestmentContract:
        contract = await self._repo.transition_contract(
            db, contract_id, new_status, settled_by, self._clock()
        )
        if contract is not None:
            return contract
        existing = await self._repo.get_contract(db, contract_id)
        if existing is None:
            raise ContractNotFoundError(contract_id)
        raise AlreadyProcessedError(f"Contract {contract_id}", existing.status.value)


def _event(event_type: str, contract: InvestmentContract, amount: int) -> LedgerEvent:
    return LedgerEvent(
        event_type=event_type,
        account_id=contract.account_id,
        amount=amount,
        reference_id=contract.id,
        status=contract.status.value,
    )
