"""Admin REST API: every route requires role == ADMIN."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.application.schemas import ProfitTopUpRequest, TransactionItem
from src.iv_account.application.service import AccountApplicationService
from src.iv_admin.application.service import AdminService
from src.iv_common.database import get_db_session
from src.iv_common.enums import ContractStatus, TransactionKind, TransactionStatus
from src.iv_common.response import ApiResponse, success_response
from src.iv_gateway.auth.dependencies import require_admin
from src.iv_investment.application.schemas import (
    ContractResponse,
    PlanCreateRequest,
    PlanResponse,
    PlanUpdateRequest,
)
from src.iv_investment.application.service import InvestmentService
from src.iv_notify.sinks import build_sink
from src.iv_referral.application.schemas import ReferralEdgeResponse
from src.iv_referral.application.service import ReferralService
from src.iv_workflow.application.schemas import DecisionBody
from src.iv_workflow.application.service import ApprovalWorkflowService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

_notifier = build_sink()
_accounts = AccountApplicationService(notifier=_notifier)
_workflow = ApprovalWorkflowService(notifier=_notifier)
_investments = InvestmentService(notifier=_notifier)
_referrals = ReferralService(notifier=_notifier)
_service = AdminService()


# --- Approval queue ---


@router.get("/requests")
async def list_requests(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: TransactionStatus | None = Query(TransactionStatus.PENDING),
    kind: TransactionKind | None = Query(None),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _workflow.list_requests(
        db,
        status.value if status else None,
        kind.value if kind else None,
        cursor,
        limit,
    )
    return success_response(data.model_dump(), request)


@router.post("/requests/{transaction_id}/decision")
async def decide_request(
    transaction_id: int,
    body: DecisionBody,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    record = await _workflow.decide(db, transaction_id, body.decision)
    return success_response(TransactionItem.from_domain(record).model_dump(), request)


# --- Plans ---


@router.post("/plans", status_code=201)
async def create_plan(
    body: PlanCreateRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    plan = await _investments.create_plan(
        db,
        body.name,
        body.min_amount_cents,
        body.max_amount_cents,
        body.roi_bps,
        body.duration_hours,
    )
    return success_response(PlanResponse.from_domain(plan).model_dump(), request)


@router.put("/plans/{plan_id}")
async def update_plan(
    plan_id: str,
    body: PlanUpdateRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    plan = await _investments.update_plan(
        db,
        plan_id,
        name=body.name,
        min_amount=body.min_amount_cents,
        max_amount=body.max_amount_cents,
        roi_bps=body.roi_bps,
        duration_hours=body.duration_hours,
        is_active=body.is_active,
    )
    return success_response(PlanResponse.from_domain(plan).model_dump(), request)


@router.delete("/plans/{plan_id}")
async def retire_plan(
    plan_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    plan = await _investments.retire_plan(db, plan_id)
    return success_response(PlanResponse.from_domain(plan).model_dump(), request)


# --- Contracts ---


@router.get("/investments")
async def list_investments(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    account_id: str | None = Query(None),
    status: ContractStatus | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    contracts = await _investments.list_contracts(
        db, account_id, status.value if status else None, limit
    )
    return success_response(
        [ContractResponse.from_domain(c).model_dump() for c in contracts], request
    )


@router.post("/investments/{contract_id}/complete")
async def complete_investment(
    contract_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    contract = await _investments.complete(db, contract_id)
    return success_response(ContractResponse.from_domain(contract).model_dump(), request)


@router.post("/investments/{contract_id}/cancel")
async def cancel_investment(
    contract_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    contract = await _investments.cancel(db, contract_id)
    return success_response(ContractResponse.from_domain(contract).model_dump(), request)


# --- Accounts ---


@router.post("/accounts/{account_id}/profit-topups", status_code=201)
async def top_up_profit(
    account_id: str,
    body: ProfitTopUpRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _accounts.top_up_profit(db, account_id, body.amount_cents, body.notes)
    return success_response(data.model_dump(), request)


# --- Referrals ---


@router.get("/referrals")
async def list_referrals(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    edges = await _referrals.list_all_referrals(db, limit)
    return success_response(
        [ReferralEdgeResponse.from_domain(e).model_dump() for e in edges], request
    )


# --- Operations ---


@router.post("/maturity-sweeps")
async def run_maturity_sweep(request: Request) -> ApiResponse:
    """Run a sweep now. ``data.skipped`` is true when one is already in progress."""
    summary = await request.app.state.maturity_scheduler.run_cycle()
    if summary is None:
        return success_response({"skipped": True}, request)
    return success_response(
        {
            "skipped": False,
            "attempted": summary.attempted,
            "completed": summary.completed,
            "already_processed": summary.already_processed,
            "failed": summary.failed,
        },
        request,
    )


@router.get("/invariants")
async def verify_invariants(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.verify_ledger_invariants(db)
    return success_response(result, request)
