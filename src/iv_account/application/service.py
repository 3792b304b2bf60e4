"""AccountApplicationService: registration, balance reads, ledger history, admin top-ups.

Mutating operations commit on success and roll back on any error.
Read operations run without explicit transaction.
"""

import logging
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.application.schemas import (
    BalanceResponse,
    LedgerResponse,
    TransactionItem,
    cursor_decode,
    cursor_encode,
)
from src.iv_account.domain.models import Account
from src.iv_account.domain.referral_code import generate_referral_code
from src.iv_account.domain.repository import LedgerRepositoryProtocol
from src.iv_account.infrastructure.persistence import LedgerRepository
from src.iv_common.enums import TransactionKind, TransactionStatus
from src.iv_common.errors import AccountExistsError, AccountNotFoundError, InternalError
from src.iv_notify.events import LedgerEvent
from src.iv_notify.sinks import NotificationSink, notify_best_effort

logger = logging.getLogger(__name__)

_MAX_CODE_ATTEMPTS = 10


class AccountApplicationService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        notifier: NotificationSink | None = None,
        code_factory: Callable[[], str] = generate_referral_code,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._notifier = notifier
        self._code_factory = code_factory

    async def register(
        self, db: AsyncSession, account_id: str, referred_by: str | None
    ) -> Account:
        """Create the account row with a fresh referral code.

        ``referred_by`` is stored only when it names an existing account's
        code. The referral bonus itself is propagated separately by
        ReferralService once this commit has landed.
        """
        try:
            if referred_by is not None:
                referrer = await self._repo.get_account_by_referral_code(db, referred_by)
                if referrer is None:
                    logger.info("Ignoring unknown referral code %s for %s", referred_by, account_id)
                    referred_by = None
            code = await self._unused_referral_code(db)
            account = await self._repo.create_account(db, account_id, code, referred_by)
            if account is None:
                raise AccountExistsError(account_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Account registered: %s code=%s", account_id, account.referral_code)
        return account

    async def get_balance(self, db: AsyncSession, account_id: str) -> BalanceResponse:
        account = await self._repo.get_account(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return BalanceResponse.from_domain(account)

    async def list_ledger(
        self,
        db: AsyncSession,
        account_id: str,
        cursor: str | None,
        limit: int,
        kind: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        records = await self._repo.list_transactions(
            db, account_id, cursor_id, limit + 1, kind, None
        )
        has_more = len(records) > limit
        page = records[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[TransactionItem.from_domain(r) for r in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def top_up_profit(
        self, db: AsyncSession, account_id: str, amount_cents: int, notes: str | None
    ) -> TransactionItem:
        """Admin credit of trading profit: balance and total_profits both grow."""
        details = {"notes": notes or f"{amount_cents} cents trading profit credited"}
        try:
            _, record = await self._repo.credit(
                db,
                account_id,
                amount_cents,
                TransactionKind.PROFIT_TOPUP,
                TransactionStatus.COMPLETED,
                details,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await notify_best_effort(
            self._notifier,
            LedgerEvent("PROFIT_TOPUP", account_id, amount_cents, str(record.id), record.status.value),
        )
        return TransactionItem.from_domain(record)

    async def _unused_referral_code(self, db: AsyncSession) -> str:
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = self._code_factory()
            if await self._repo.get_account_by_referral_code(db, code) is None:
                return code
        raise InternalError("Could not allocate a unique referral code")
