"""Referral repository Protocol: domain layer depends on this abstraction."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_referral.domain.models import ReferralEdge


class ReferralRepositoryProtocol(Protocol):
    async def insert_if_absent(
        self,
        db: AsyncSession,
        referrer_account_id: str,
        referred_account_id: str,
        bonus_amount: int,
    ) -> ReferralEdge | None:
        """Create the edge unless the referred account already has one.

        Returns None when an edge already exists. Existence check and insert
        are a single statement.
        """
        ...

    async def list_all(self, db: AsyncSession, limit: int) -> list[ReferralEdge]:
        """Newest edges first, across every referrer (admin audit)."""
        ...

    async def list_by_referrer(
        self, db: AsyncSession, referrer_account_id: str
    ) -> list[ReferralEdge]: ...
