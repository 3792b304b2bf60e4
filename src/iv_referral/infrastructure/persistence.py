"""ReferralRepository: raw SQL over referral_edges.

The unique index on referred_account_id turns ON CONFLICT DO NOTHING into an
atomic insert-if-absent: a retried or duplicated registration gets zero rows
back and therefore never awards a second bonus.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_referral.domain.models import ReferralEdge

_EDGE_COLUMNS = "id, referrer_account_id, referred_account_id, bonus_amount, awarded_at"

_INSERT_EDGE_SQL = text(f"""
    INSERT INTO referral_edges (referrer_account_id, referred_account_id, bonus_amount)
    VALUES (:referrer_account_id, :referred_account_id, :bonus_amount)
    ON CONFLICT (referred_account_id) DO NOTHING
    RETURNING {_EDGE_COLUMNS}
""")

_LIST_ALL_SQL = text(f"SELECT {_EDGE_COLUMNS} FROM referral_edges ORDER BY id DESC LIMIT :limit")

_LIST_BY_REFERRER_SQL = text(f"""
    SELECT {_EDGE_COLUMNS}
    FROM referral_edges
    WHERE referrer_account_id = :referrer_account_id
    ORDER BY id DESC
""")


def _row_to_edge(row: Any) -> ReferralEdge:
    return ReferralEdge(
        id=row.id,
        referrer_account_id=row.referrer_account_id,
        referred_account_id=row.referred_account_id,
        bonus_amount=row.bonus_amount,
        awarded_at=row.awarded_at,
    )


class ReferralRepository:
    async def insert_if_absent(
        self,
        db: AsyncSession,
        referrer_account_id: str,
        referred_account_id: str,
        bonus_amount: int,
    ) -> ReferralEdge | None:
        result = await db.execute(
            _INSERT_EDGE_SQL,
            {
                "referrer_account_id": referrer_account_id,
                "referred_account_id": referred_account_id,
                "bonus_amount": bonus_amount,
            },
        )
        row = result.fetchone()
        return _row_to_edge(row) if row else None

    async def list_all(self, db: AsyncSession, limit: int) -> list[ReferralEdge]:
        result = await db.execute(_LIST_ALL_SQL, {"limit": limit})
        return [_row_to_edge(row) for row in result.fetchall()]

    async def list_by_referrer(
        self, db: AsyncSession, referrer_account_id: str
    ) -> list[ReferralEdge]:
        result = await db.execute(
            _LIST_BY_REFERRER_SQL, {"referrer_account_id": referrer_account_id}
        )
        return [_row_to_edge(row) for row in result.fetchall()]
