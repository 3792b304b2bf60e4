"""iv_referral REST API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_common.database import get_db_session
from src.iv_common.response import ApiResponse, success_response
from src.iv_gateway.auth.context import AuthContext
from src.iv_gateway.auth.dependencies import get_auth_context
from src.iv_notify.sinks import build_sink
from src.iv_referral.application.schemas import ReferralEdgeResponse, RegisterReferralRequest
from src.iv_referral.application.service import ReferralService

router = APIRouter(prefix="/referrals", tags=["referrals"])

_service = ReferralService(notifier=build_sink())


@router.get("")
async def list_referrals(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    edges = await _service.list_referrals(db, auth.account_id)
    data = [ReferralEdgeResponse.from_domain(e).model_dump() for e in edges]
    return success_response(data, request)


@router.post("")
async def register_referral(
    body: RegisterReferralRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    """Attach a referral code after registration. ``data`` is null when no bonus was awarded."""
    edge = await _service.register_referral(db, body.referral_code, auth.account_id)
    data = ReferralEdgeResponse.from_domain(edge).model_dump() if edge else None
    return success_response(data, request)
