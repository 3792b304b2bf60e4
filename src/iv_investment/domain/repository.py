"""Repository Protocol for plans and contracts.

Contract transitions are conditional on ``status = 'ACTIVE'``; the returned
None is how callers learn they lost the race.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_common.enums import ContractStatus, SettledBy
from src.iv_investment.domain.models import InvestmentContract, InvestmentPlan


class InvestmentRepositoryProtocol(Protocol):
    async def create_plan(self, db: AsyncSession, plan: InvestmentPlan) -> InvestmentPlan | None:
        """Returns None when the plan name is already taken."""
        ...

    async def get_plan(self, db: AsyncSession, plan_id: str) -> InvestmentPlan | None: ...

    async def get_plan_by_name(self, db: AsyncSession, name: str) -> InvestmentPlan | None: ...

    async def update_plan(self, db: AsyncSession, plan: InvestmentPlan) -> InvestmentPlan | None: ...

    async def list_plans(self, db: AsyncSession, active_only: bool) -> list[InvestmentPlan]: ...

    async def insert_contract(
        self, db: AsyncSession, contract: InvestmentContract
    ) -> InvestmentContract: ...

    async def get_contract(
        self, db: AsyncSession, contract_id: str
    ) -> InvestmentContract | None: ...

    async def transition_contract(
        self,
        db: AsyncSession,
        contract_id: str,
        new_status: ContractStatus,
        settled_by: SettledBy,
        settled_at: datetime,
    ) -> InvestmentContract | None: ...

    async def list_contracts(
        self,
        db: AsyncSession,
        account_id: str | None,
        status: str | None,
        limit: int,
    ) -> list[InvestmentContract]: ...

    async def list_matured_contract_ids(
        self, db: AsyncSession, now: datetime, limit: int, skip_ids: Sequence[str] = ()
    ) -> list[str]:
        """ACTIVE contracts with end_time <= now, oldest first, minus ``skip_ids``."""
        ...
