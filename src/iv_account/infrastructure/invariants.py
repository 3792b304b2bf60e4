"""Ledger replay check: accounts.balance vs. the sum of applied records.

The CASE expression is generated from LEDGER_EFFECTS so the SQL replay and
the Python ``replay_balance`` can never disagree about a kind.
"""

from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.domain.effects import LEDGER_EFFECTS


def replay_case_sql() -> str:
    branches = []
    for kind, effect in LEDGER_EFFECTS.items():
        statuses = ", ".join(sorted(f"'{s.value}'" for s in effect.applied_statuses))
        sign = "" if effect.is_credit else "-"
        branches.append(
            f"WHEN t.kind = '{kind.value}' AND t.status IN ({statuses}) THEN {sign}t.amount"
        )
    return "CASE " + " ".join(branches) + " ELSE 0 END"


_BALANCE_MISMATCH_SQL = text(f"""
    SELECT a.id AS account_id,
           a.balance AS balance,
           COALESCE(SUM({replay_case_sql()}), 0) AS replayed
    FROM accounts a
    LEFT JOIN transactions t ON t.account_id = a.id
    GROUP BY a.id, a.balance
    HAVING a.balance <> COALESCE(SUM({replay_case_sql()}), 0)
""")


@dataclass
class BalanceMismatch:
    account_id: str
    balance: int
    replayed: int


async def find_balance_mismatches(db: AsyncSession) -> list[BalanceMismatch]:
    rows = (await db.execute(_BALANCE_MISMATCH_SQL)).fetchall()
    return [BalanceMismatch(r.account_id, int(r.balance), int(r.replayed)) for r in rows]
