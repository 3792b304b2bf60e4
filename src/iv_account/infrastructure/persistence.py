"""LedgerRepository: concrete implementation of LedgerRepositoryProtocol.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING.
A result of 0 rows means a business constraint was violated (insufficient
funds, record no longer PENDING, refund already applied).

Transaction ownership: The CALLER (application service) is responsible for
committing or rolling back. Balance update and ledger insert always run in
the same transaction.
"""

import json
from typing import Any

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.domain.effects import LEDGER_EFFECTS, AccountCounter, effect_for
from src.iv_account.domain.models import Account, TransactionRecord
from src.iv_common.datetime_utils import utc_now
from src.iv_common.enums import TransactionKind, TransactionStatus
from src.iv_common.errors import (
    AccountNotFoundError,
    AlreadyProcessedError,
    InsufficientFundsError,
    InternalError,
    TransactionNotFoundError,
    ValidationError,
)

_ACCOUNT_COLUMNS = (
    "id, balance, total_profits, referral_earnings, referral_code, referred_by, "
    "version, created_at, updated_at"
)
_TX_COLUMNS = (
    "id, account_id, kind, amount, status, details, reference_id, "
    "created_at, decided_at, refunded_at"
)
_REFUNDABLE_KINDS = ", ".join(
    f"'{kind.value}'" for kind, effect in LEDGER_EFFECTS.items() if effect.debits_on_create
)

# ---------------------------------------------------------------------------
# SQL: accounts
# ---------------------------------------------------------------------------

_GET_ACCOUNT_SQL = text(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = :account_id")

_GET_ACCOUNT_BY_CODE_SQL = text(
    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE referral_code = :referral_code"
)

_CREATE_ACCOUNT_SQL = text(f"""
    INSERT INTO accounts (id, referral_code, referred_by)
    VALUES (:account_id, :referral_code, :referred_by)
    ON CONFLICT (id) DO NOTHING
    RETURNING {_ACCOUNT_COLUMNS}
""")


def _credit_sql(counter: AccountCounter | None) -> TextClause:
    bump = f", {counter.value} = {counter.value} + :amount" if counter else ""
    return text(f"""
        UPDATE accounts
        SET balance = balance + :amount{bump},
            version = version + 1,
            updated_at = NOW()
        WHERE id = :account_id
        RETURNING {_ACCOUNT_COLUMNS}
    """)


_CREDIT_SQL = {
    None: _credit_sql(None),
    AccountCounter.TOTAL_PROFITS: _credit_sql(AccountCounter.TOTAL_PROFITS),
    AccountCounter.REFERRAL_EARNINGS: _credit_sql(AccountCounter.REFERRAL_EARNINGS),
}

_DEBIT_SQL = text(f"""
    UPDATE accounts
    SET balance = balance - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :account_id AND balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: transactions
# ---------------------------------------------------------------------------

_INSERT_TX_SQL = text(f"""
    INSERT INTO transactions
        (account_id, kind, amount, status, details, reference_id, decided_at)
    VALUES
        (:account_id, :kind, :amount, :status, CAST(:details AS JSONB),
         :reference_id, :decided_at)
    RETURNING {_TX_COLUMNS}
""")

_GET_TX_SQL = text(f"SELECT {_TX_COLUMNS} FROM transactions WHERE id = :transaction_id")

_TRANSITION_SQL = text(f"""
    UPDATE transactions
    SET status = :new_status,
        decided_at = NOW()
    WHERE id = :transaction_id AND status = 'PENDING'
    RETURNING {_TX_COLUMNS}
""")

_MARK_REFUNDED_SQL = text(f"""
    UPDATE transactions
    SET refunded_at = NOW()
    WHERE id = :transaction_id
      AND status = 'DECLINED'
      AND refunded_at IS NULL
      AND kind IN ({_REFUNDABLE_KINDS})
    RETURNING {_TX_COLUMNS}
""")

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE (CAST(:account_id AS VARCHAR) IS NULL OR account_id = :account_id)
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:kind AS VARCHAR) IS NULL OR kind = :kind)
      AND (CAST(:status AS VARCHAR) IS NULL OR status = :status)
    ORDER BY id DESC
    LIMIT :limit
""")


def _load_details(raw: Any) -> dict[str, Any]:
    # asyncpg hands JSONB back as text when the statement is untyped
    if raw is None:
        return {}
    if isinstance(raw, str):
        return dict(json.loads(raw))
    return dict(raw)


def _row_to_account(row: Any) -> Account:
    return Account(
        id=row.id,
        balance=row.balance,
        total_profits=row.total_profits,
        referral_earnings=row.referral_earnings,
        referral_code=row.referral_code,
        referred_by=row.referred_by,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_record(row: Any) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        account_id=row.account_id,
        kind=TransactionKind(row.kind),
        amount=row.amount,
        status=TransactionStatus(row.status),
        details=_load_details(row.details),
        reference_id=row.reference_id,
        created_at=row.created_at,
        decided_at=row.decided_at,
        refunded_at=row.refunded_at,
    )


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise ValidationError(f"Amount must be positive, got {amount}")


class LedgerRepository:
    """Concrete repository: all operations atomic at the SQL level."""

    async def get_account(self, db: AsyncSession, account_id: str) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"account_id": account_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_account_by_referral_code(
        self, db: AsyncSession, referral_code: str
    ) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_BY_CODE_SQL, {"referral_code": referral_code})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def create_account(
        self,
        db: AsyncSession,
        account_id: str,
        referral_code: str,
        referred_by: str | None,
    ) -> Account | None:
        result = await db.execute(
            _CREATE_ACCOUNT_SQL,
            {
                "account_id": account_id,
                "referral_code": referral_code,
                "referred_by": referred_by,
            },
        )
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def credit(
        self,
        db: AsyncSession,
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
        account = await self._adjust(db, account_id, amount, effect.counter)
        record = await self._insert(db, account_id, amount, kind, status, details, reference_id)
        return account, record

    async def debit(
        self,
        db: AsyncSession,
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
        result = await db.execute(_DEBIT_SQL, {"account_id": account_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            current = await self.get_account(db, account_id)
            if current is None:
                raise AccountNotFoundError(account_id)
            raise InsufficientFundsError(amount, current.balance)
        account = _row_to_account(row)
        record = await self._insert(db, account_id, amount, kind, status, details, reference_id)
        return account, record

    async def insert_pending(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        details: dict[str, Any],
    ) -> TransactionRecord:
        _require_positive(amount)
        if effect_for(kind).debits_on_create:
            raise InternalError(f"insert_pending() called with outgoing kind {kind.value}")
        if await self.get_account(db, account_id) is None:
            raise AccountNotFoundError(account_id)
        return await self._insert(
            db, account_id, amount, kind, TransactionStatus.PENDING, details, None
        )

    async def get_transaction(
        self, db: AsyncSession, transaction_id: int
    ) -> TransactionRecord | None:
        result = await db.execute(_GET_TX_SQL, {"transaction_id": transaction_id})
        row = result.fetchone()
        return _row_to_record(row) if row else None

    async def transition_status(
        self,
        db: AsyncSession,
        transaction_id: int,
        new_status: TransactionStatus,
    ) -> TransactionRecord | None:
        result = await db.execute(
            _TRANSITION_SQL,
            {"transaction_id": transaction_id, "new_status": new_status.value},
        )
        row = result.fetchone()
        return _row_to_record(row) if row else None

    async def apply_credit(self, db: AsyncSession, record: TransactionRecord) -> Account:
        effect = effect_for(record.kind)
        if not effect.is_credit:
            raise InternalError(f"apply_credit() called with outgoing kind {record.kind.value}")
        return await self._adjust(db, record.account_id, record.amount, effect.counter)

    async def refund(
        self, db: AsyncSession, transaction_id: int
    ) -> tuple[Account, TransactionRecord]:
        result = await db.execute(_MARK_REFUNDED_SQL, {"transaction_id": transaction_id})
        row = result.fetchone()
        if row is None:
            existing = await self.get_transaction(db, transaction_id)
            if existing is None:
                raise TransactionNotFoundError(transaction_id)
            raise AlreadyProcessedError(f"Refund of transaction {transaction_id}", existing.status.value)
        record = _row_to_record(row)
        account = await self._adjust(db, record.account_id, record.amount, None)
        return account, record

    async def list_transactions(
        self,
        db: AsyncSession,
        account_id: str | None,
        cursor_id: int | None,
        limit: int,
        kind: str | None,
        status: str | None,
    ) -> list[TransactionRecord]:
        result = await db.execute(
            _LIST_TX_SQL,
            {
                "account_id": account_id,
                "cursor_id": cursor_id,
                "kind": kind,
                "status": status,
                "limit": limit,
            },
        )
        return [_row_to_record(row) for row in result.fetchall()]

    # -----------------------------------------------------------------------
    # internals
    # -----------------------------------------------------------------------

    async def _adjust(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        counter: AccountCounter | None,
    ) -> Account:
        result = await db.execute(
            _CREDIT_SQL[counter], {"account_id": account_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(account_id)
        return _row_to_account(row)

    async def _insert(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        status: TransactionStatus,
        details: dict[str, Any],
        reference_id: str | None,
    ) -> TransactionRecord:
        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "account_id": account_id,
                "kind": kind.value,
                "amount": amount,
                "status": status.value,
                "details": json.dumps(details),
                "reference_id": reference_id,
                "decided_at": None if status == TransactionStatus.PENDING else utc_now(),
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows; this should never happen")
        return _row_to_record(row)
