"""ApprovalWorkflowService: generic PENDING -> {APPROVED, DECLINED} state machine.

What a request does to the balance is looked up in LEDGER_EFFECTS:
outgoing kinds are debited when the request is created and refunded on
decline; incoming kinds are credited on approval. The decision itself is a
compare-and-swap on ``status = 'PENDING'``, so concurrent or retried
decisions produce exactly one balance effect.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.application.schemas import (
    LedgerResponse,
    TransactionItem,
    cursor_decode,
    cursor_encode,
)
from src.iv_account.domain.effects import EffectAction, effect_for
from src.iv_account.domain.models import TransactionRecord
from src.iv_account.domain.repository import LedgerRepositoryProtocol
from src.iv_account.infrastructure.persistence import LedgerRepository
from src.iv_common.enums import Decision, Role, TransactionKind, TransactionStatus
from src.iv_common.errors import (
    AlreadyProcessedError,
    ForbiddenError,
    TransactionNotFoundError,
    ValidationError,
)
from src.iv_notify.events import LedgerEvent
from src.iv_notify.sinks import NotificationSink, notify_best_effort

logger = logging.getLogger(__name__)

_DECISION_STATUS = {
    Decision.APPROVE: TransactionStatus.APPROVED,
    Decision.DECLINE: TransactionStatus.DECLINED,
}


class ApprovalWorkflowService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._notifier = notifier

    async def create_request(
        self,
        db: AsyncSession,
        account_id: str,
        kind: TransactionKind,
        amount: int,
        details: dict[str, Any],
        role: Role = Role.USER,
    ) -> TransactionRecord:
        effect = effect_for(kind)
        if not effect.reviewable:
            raise ValidationError(f"{kind.value} cannot be requested; it is system-generated")
        if effect.admin_only and role != Role.ADMIN:
            raise ForbiddenError(f"Only admins may request {kind.value}")
        if amount <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        if effect.requires_proof and not details.get("proof_ref"):
            raise ValidationError(f"{kind.value} requires a proof-of-payment reference")

        try:
            if effect.debits_on_create:
                _, record = await self._repo.debit(
                    db, account_id, amount, kind, TransactionStatus.PENDING, details
                )
            else:
                record = await self._repo.insert_pending(db, account_id, amount, kind, details)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Request %d created: %s %s amount=%d", record.id, account_id, kind.value, amount
        )
        await notify_best_effort(self._notifier, _event("REQUEST_CREATED", record))
        return record

    async def decide(
        self, db: AsyncSession, transaction_id: int, decision: Decision
    ) -> TransactionRecord:
        try:
            current = await self._repo.get_transaction(db, transaction_id)
            if current is None:
                raise TransactionNotFoundError(transaction_id)
            decided = await self._repo.transition_status(
                db, transaction_id, _DECISION_STATUS[decision]
            )
            if decided is None:
                raise AlreadyProcessedError(f"Transaction {transaction_id}", current.status.value)

            action = effect_for(decided.kind).action_for(decision)
            if action == EffectAction.CREDIT:
                await self._repo.apply_credit(db, decided)
            elif action == EffectAction.REFUND:
                await self._repo.refund(db, decided.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Request %d %s (%s, effect=%s)",
            transaction_id,
            decided.status.value,
            decided.kind.value,
            action.value,
        )
        await notify_best_effort(self._notifier, _event(f"REQUEST_{decided.status.value}", decided))
        return decided

    async def get_request(self, db: AsyncSession, transaction_id: int) -> TransactionRecord:
        record = await self._repo.get_transaction(db, transaction_id)
        if record is None:
            raise TransactionNotFoundError(transaction_id)
        return record

    async def list_requests(
        self,
        db: AsyncSession,
        status: str | None,
        kind: str | None,
        cursor: str | None,
        limit: int,
    ) -> LedgerResponse:
        """Admin review queue (defaults to PENDING at the router)."""
        records = await self._repo.list_transactions(
            db, None, cursor_decode(cursor), limit + 1, kind, status
        )
        has_more = len(records) > limit
        page = records[:limit]
        return LedgerResponse(
            items=[TransactionItem.from_domain(r) for r in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )


def _event(event_type: str, record: TransactionRecord) -> LedgerEvent:
    return LedgerEvent(
        event_type=event_type,
        account_id=record.account_id,
        amount=record.amount,
        reference_id=str(record.id),
        status=record.status.value,
    )
