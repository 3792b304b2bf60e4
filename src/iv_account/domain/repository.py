"""Repository Protocol: dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Contract shared by all implementations: balance changes and status
transitions are single conditional updates. Nothing here commits; the
application service owns the unit of work.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.domain.models import Account, TransactionRecord
from src.iv_common.enums import TransactionKind, TransactionStatus


class LedgerRepositoryProtocol(Protocol):
    async def get_account(self, db: AsyncSession, account_id: str) -> Account | None: ...

    async def get_account_by_referral_code(
        self, db: AsyncSession, referral_code: str
    ) -> Account | None: ...

    async def create_account(
        self,
        db: AsyncSession,
        account_id: str,
        referral_code: str,
        referred_by: str | None,
    ) -> Account | None:
        """Insert-if-absent. Returns None when the id is already registered."""
        ...

    async def credit(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        status: TransactionStatus,
        details: dict[str, Any],
        reference_id: str | None = None,
    ) -> tuple[Account, TransactionRecord]: ...

    async def debit(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        status: TransactionStatus,
        details: dict[str, Any],
        reference_id: str | None = None,
    ) -> tuple[Account, TransactionRecord]: ...

    async def insert_pending(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        details: dict[str, Any],
    ) -> TransactionRecord:
        """Record with no balance effect yet (incoming kinds awaiting review)."""
        ...

    async def get_transaction(
        self, db: AsyncSession, transaction_id: int
    ) -> TransactionRecord | None: ...

    async def transition_status(
        self,
        db: AsyncSession,
        transaction_id: int,
        new_status: TransactionStatus,
    ) -> TransactionRecord | None:
        """CAS PENDING -> new_status. None when the record is not PENDING."""
        ...

    async def apply_credit(self, db: AsyncSession, record: TransactionRecord) -> Account:
        """Credit the balance for an already-recorded incoming record."""
        ...

    async def refund(
        self, db: AsyncSession, transaction_id: int
    ) -> tuple[Account, TransactionRecord]:
        """Re-credit a DECLINED outgoing record exactly once."""
        ...

    async def list_transactions(
        self,
        db: AsyncSession,
        account_id: str | None,
        cursor_id: int | None,
        limit: int,
        kind: str | None,
        status: str | None,
    ) -> list[TransactionRecord]: ...
