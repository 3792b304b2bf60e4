"""iv_account REST API: registration, balance and ledger history."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.application.schemas import BalanceResponse, RegisterRequest
from src.iv_account.application.service import AccountApplicationService
from src.iv_common.database import get_db_session
from src.iv_common.response import ApiResponse, success_response
from src.iv_gateway.auth.context import AuthContext
from src.iv_gateway.auth.dependencies import get_auth_context
from src.iv_notify.sinks import build_sink
from src.iv_referral.application.service import ReferralService

router = APIRouter(prefix="/accounts", tags=["accounts"])

_notifier = build_sink()
_service = AccountApplicationService(notifier=_notifier)
_referrals = ReferralService(notifier=_notifier)


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    account = await _service.register(db, auth.account_id, body.referred_by)
    referral = None
    if body.referred_by:
        # Unknown code or self-referral is not an error for registration
        edge = await _referrals.register_referral(db, body.referred_by, auth.account_id)
        referral = edge.id if edge is not None else None
    data = BalanceResponse.from_domain(account).model_dump()
    data["referral_edge_id"] = referral
    return success_response(data, request)


@router.get("/me")
async def get_me(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, auth.account_id)
    return success_response(data.model_dump(), request)


@router.get("/me/ledger")
async def list_ledger(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    kind: str | None = Query(None, description="Filter by TransactionKind"),
) -> ApiResponse:
    data = await _service.list_ledger(db, auth.account_id, cursor, limit, kind)
    return success_response(data.model_dump(), request)
