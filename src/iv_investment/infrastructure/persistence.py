"""InvestmentRepository: concrete implementation of InvestmentRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_common.enums import ContractStatus, SettledBy
from src.iv_common.errors import InternalError
from src.iv_investment.domain.models import InvestmentContract, InvestmentPlan

_PLAN_COLUMNS = (
    "id, name, min_amount, max_amount, roi_bps, duration_hours, is_active, "
    "created_at, updated_at"
)
_CONTRACT_COLUMNS = (
    "id, account_id, plan_id, principal, roi_bps, start_time, end_time, status, "
    "funding_transaction_id, settled_by, settled_at, created_at"
)

# ---------------------------------------------------------------------------
# SQL: plans
# ---------------------------------------------------------------------------

_INSERT_PLAN_SQL = text(f"""
    INSERT INTO investment_plans
        (id, name, min_amount, max_amount, roi_bps, duration_hours, is_active)
    VALUES
        (:id, :name, :min_amount, :max_amount, :roi_bps, :duration_hours, :is_active)
    ON CONFLICT (name) DO NOTHING
    RETURNING {_PLAN_COLUMNS}
""")

_GET_PLAN_SQL = text(f"SELECT {_PLAN_COLUMNS} FROM investment_plans WHERE id = :plan_id")

_GET_PLAN_BY_NAME_SQL = text(f"SELECT {_PLAN_COLUMNS} FROM investment_plans WHERE name = :name")

_UPDATE_PLAN_SQL = text(f"""
    UPDATE investment_plans
    SET name = :name,
        min_amount = :min_amount,
        max_amount = :max_amount,
        roi_bps = :roi_bps,
        duration_hours = :duration_hours,
        is_active = :is_active,
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_PLAN_COLUMNS}
""")

_LIST_PLANS_SQL = text(f"""
    SELECT {_PLAN_COLUMNS}
    FROM investment_plans
    WHERE (CAST(:active_only AS BOOLEAN) = FALSE OR is_active = TRUE)
    ORDER BY min_amount, name
""")

# ---------------------------------------------------------------------------
# SQL: contracts
# ---------------------------------------------------------------------------

_INSERT_CONTRACT_SQL = text(f"""
    INSERT INTO investment_contracts
        (id, account_id, plan_id, principal, roi_bps, start_time, end_time,
         status, funding_transaction_id)
    VALUES
        (:id, :account_id, :plan_id, :principal, :roi_bps, :start_time, :end_time,
         :status, :funding_transaction_id)
    RETURNING {_CONTRACT_COLUMNS}
""")

_GET_CONTRACT_SQL = text(
    f"SELECT {_CONTRACT_COLUMNS} FROM investment_contracts WHERE id = :contract_id"
)

# Compare-and-swap: the scheduler and the admin path may race on the same
# contract; only the caller that sees a returned row pays out.
_TRANSITION_CONTRACT_SQL = text(f"""
    UPDATE investment_contracts
    SET status = :new_status,
        settled_by = :settled_by,
        settled_at = :settled_at,
        updated_at = NOW()
    WHERE id = :contract_id AND status = 'ACTIVE'
    RETURNING {_CONTRACT_COLUMNS}
""")

_LIST_CONTRACTS_SQL = text(f"""
    SELECT {_CONTRACT_COLUMNS}
    FROM investment_contracts
    WHERE (CAST(:account_id AS VARCHAR) IS NULL OR account_id = :account_id)
      AND (CAST(:status AS VARCHAR) IS NULL OR status = :status)
    ORDER BY start_time DESC, id DESC
    LIMIT :limit
""")

# Served by ix_investment_contracts_status_end_time
_MATURED_IDS_SQL = text("""
    SELECT id
    FROM investment_contracts
    WHERE status = 'ACTIVE' AND end_time <= :now
      AND NOT (id = ANY(CAST(:skip_ids AS VARCHAR[])))
    ORDER BY end_time, id
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_plan(row: Any) -> InvestmentPlan:
    return InvestmentPlan(
        id=row.id,
        name=row.name,
        min_amount=row.min_amount,
        max_amount=row.max_amount,
        roi_bps=row.roi_bps,
        duration_hours=row.duration_hours,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_contract(row: Any) -> InvestmentContract:
    return InvestmentContract(
        id=row.id,
        account_id=row.account_id,
        plan_id=row.plan_id,
        principal=row.principal,
        roi_bps=row.roi_bps,
        start_time=row.start_time,
        end_time=row.end_time,
        status=ContractStatus(row.status),
        funding_transaction_id=row.funding_transaction_id,
        settled_by=SettledBy(row.settled_by) if row.settled_by else None,
        settled_at=row.settled_at,
        created_at=row.created_at,
    )


def _plan_params(plan: InvestmentPlan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "name": plan.name,
        "min_amount": plan.min_amount,
        "max_amount": plan.max_amount,
        "roi_bps": plan.roi_bps,
        "duration_hours": plan.duration_hours,
        "is_active": plan.is_active,
    }


class InvestmentRepository:
    async def create_plan(self, db: AsyncSession, plan: InvestmentPlan) -> InvestmentPlan | None:
        result = await db.execute(_INSERT_PLAN_SQL, _plan_params(plan))
        row = result.fetchone()
        return _row_to_plan(row) if row else None

    async def get_plan(self, db: AsyncSession, plan_id: str) -> InvestmentPlan | None:
        result = await db.execute(_GET_PLAN_SQL, {"plan_id": plan_id})
        row = result.fetchone()
        return _row_to_plan(row) if row else None

    async def get_plan_by_name(self, db: AsyncSession, name: str) -> InvestmentPlan | None:
        result = await db.execute(_GET_PLAN_BY_NAME_SQL, {"name": name})
        row = result.fetchone()
        return _row_to_plan(row) if row else None

    async def update_plan(self, db: AsyncSession, plan: InvestmentPlan) -> InvestmentPlan | None:
        result = await db.execute(_UPDATE_PLAN_SQL, _plan_params(plan))
        row = result.fetchone()
        return _row_to_plan(row) if row else None

    async def list_plans(self, db: AsyncSession, active_only: bool) -> list[InvestmentPlan]:
        result = await db.execute(_LIST_PLANS_SQL, {"active_only": active_only})
        return [_row_to_plan(row) for row in result.fetchall()]

    async def insert_contract(
        self, db: AsyncSession, contract: InvestmentContract
    ) -> InvestmentContract:
        result = await db.execute(
            _INSERT_CONTRACT_SQL,
            {
                "id": contract.id,
                "account_id": contract.account_id,
                "plan_id": contract.plan_id,
                "principal": contract.principal,
                "roi_bps": contract.roi_bps,
                "start_time": contract.start_time,
                "end_time": contract.end_time,
                "status": contract.status.value,
                "funding_transaction_id": contract.funding_transaction_id,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Contract insert returned no rows")
        return _row_to_contract(row)

    async def get_contract(
        self, db: AsyncSession, contract_id: str
    ) -> InvestmentContract | None:
        result = await db.execute(_GET_CONTRACT_SQL, {"contract_id": contract_id})
        row = result.fetchone()
        return _row_to_contract(row) if row else None

    async def transition_contract(
        self,
        db: AsyncSession,
        contract_id: str,
        new_status: ContractStatus,
        settled_by: SettledBy,
        settled_at: datetime,
    ) -> InvestmentContract | None:
        result = await db.execute(
            _TRANSITION_CONTRACT_SQL,
            {
                "contract_id": contract_id,
                "new_status": new_status.value,
                "settled_by": settled_by.value,
                "settled_at": settled_at,
            },
        )
        row = result.fetchone()
        return _row_to_contract(row) if row else None

    async def list_contracts(
        self,
        db: AsyncSession,
        account_id: str | None,
        status: str | None,
        limit: int,
    ) -> list[InvestmentContract]:
        result = await db.execute(
            _LIST_CONTRACTS_SQL,
            {"account_id": account_id, "status": status, "limit": limit},
        )
        return [_row_to_contract(row) for row in result.fetchall()]

    async def list_matured_contract_ids(
        self, db: AsyncSession, now: datetime, limit: int, skip_ids: Sequence[str] = ()
    ) -> list[str]:
        result = await db.execute(
            _MATURED_IDS_SQL, {"now": now, "limit": limit, "skip_ids": list(skip_ids)}
        )
        return [row.id for row in result.fetchall()]
