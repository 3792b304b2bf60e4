"""Admin application service: ledger invariant audit."""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.infrastructure.invariants import find_balance_mismatches

logger = logging.getLogger(__name__)

# COMPLETED needs exactly one payout; ACTIVE/CANCELLED need none.
_PAYOUT_MISMATCH_SQL = text("""
    SELECT c.id AS contract_id, c.status AS status, COUNT(t.id) AS payouts
    FROM investment_contracts c
    LEFT JOIN transactions t
           ON t.reference_id = c.id AND t.kind = 'INVESTMENT_PAYOUT'
    GROUP BY c.id, c.status
    HAVING (c.status = 'COMPLETED' AND COUNT(t.id) <> 1)
        OR (c.status <> 'COMPLETED' AND COUNT(t.id) > 0)
""")


class AdminService:
    async def verify_ledger_invariants(self, db: AsyncSession) -> dict[str, Any]:
        """Replay every account's ledger and cross-check contract payouts."""
        violations: list[str] = []

        for m in await find_balance_mismatches(db):
            violations.append(
                f"account {m.account_id}: balance {m.balance} != replayed {m.replayed}"
            )

        rows = (await db.execute(_PAYOUT_MISMATCH_SQL)).fetchall()
        for row in rows:
            violations.append(
                f"contract {row.contract_id} ({row.status}) has {row.payouts} payout records"
            )

        for violation in violations:
            logger.error("Ledger invariant violated: %s", violation)
        return {"ok": len(violations) == 0, "violations": violations}
