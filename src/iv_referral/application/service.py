"""ReferralService: awards the one-shot referral bonus.

Edge insert and bonus credit run in one DB transaction: either the edge
exists and the referrer has been paid, or neither happened.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.iv_account.domain.repository import LedgerRepositoryProtocol
from src.iv_account.infrastructure.persistence import LedgerRepository
from src.iv_common.enums import TransactionKind, TransactionStatus
from src.iv_common.errors import AccountNotFoundError
from src.iv_notify.events import LedgerEvent
from src.iv_notify.sinks import NotificationSink, notify_best_effort
from src.iv_referral.domain.models import ReferralEdge
from src.iv_referral.domain.repository import ReferralRepositoryProtocol
from src.iv_referral.infrastructure.persistence import ReferralRepository

logger = logging.getLogger(__name__)


class ReferralService:
    def __init__(
        self,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        referral_repo: ReferralRepositoryProtocol | None = None,
        notifier: NotificationSink | None = None,
        bonus_cents: int | None = None,
    ) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._referrals: ReferralRepositoryProtocol = referral_repo or ReferralRepository()
        self._notifier = notifier
        self._bonus = bonus_cents if bonus_cents is not None else settings.REFERRAL_BONUS_CENTS

    async def register_referral(
        self, db: AsyncSession, referrer_code: str, referred_account_id: str
    ) -> ReferralEdge | None:
        """Credit the owner of ``referrer_code`` for ``referred_account_id``.

        Returns None (no bonus) for an unknown code, a self-referral, or when
        the referred account already produced an edge.
        """
        try:
            referrer = await self._ledger.get_account_by_referral_code(db, referrer_code)
            if referrer is None:
                logger.info("Unknown referral code %s for %s", referrer_code, referred_account_id)
                return None
            if await self._ledger.get_account(db, referred_account_id) is None:
                raise AccountNotFoundError(referred_account_id)
            if referrer.id == referred_account_id:
                logger.info("Self-referral ignored for %s", referred_account_id)
                return None

            edge = await self._referrals.insert_if_absent(
                db, referrer.id, referred_account_id, self._bonus
            )
            if edge is None:
                logger.info("Referral for %s already awarded", referred_account_id)
                return None

            await self._ledger.credit(
                db,
                referrer.id,
                self._bonus,
                TransactionKind.REFERRAL_BONUS,
                TransactionStatus.COMPLETED,
                {"referred_account_id": referred_account_id, "referral_code": referrer_code},
                reference_id=str(edge.id),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Referral bonus %d credited to %s for %s",
            self._bonus,
            referrer.id,
            referred_account_id,
        )
        await notify_best_effort(
            self._notifier,
            LedgerEvent(
                "REFERRAL_BONUS",
                referrer.id,
                self._bonus,
                str(edge.id),
                TransactionStatus.COMPLETED.value,
            ),
        )
        return edge

    async def list_referrals(
        self, db: AsyncSession, referrer_account_id: str
    ) -> list[ReferralEdge]:
        return await self._referrals.list_by_referrer(db, referrer_account_id)

    async def list_all_referrals(self, db: AsyncSession, limit: int) -> list[ReferralEdge]:
        return await self._referrals.list_all(db, limit)
