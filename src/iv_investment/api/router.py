"""iv_investment REST API: user side. Plan and contract administration lives in iv_admin."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_common.database import get_db_session
from src.iv_common.enums import ContractStatus
from src.iv_common.response import ApiResponse, success_response
from src.iv_gateway.auth.context import AuthContext
from src.iv_gateway.auth.dependencies import get_auth_context
from src.iv_investment.application.schemas import (
    ContractResponse,
    OpenInvestmentRequest,
    PlanResponse,
)
from src.iv_investment.application.service import InvestmentService
from src.iv_notify.sinks import build_sink

router = APIRouter(tags=["investments"])

_service = InvestmentService(notifier=build_sink())


@router.get("/plans")
async def list_plans(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    _auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> ApiResponse:
    plans = await _service.list_plans(db, active_only=True)
    return success_response([PlanResponse.from_domain(p).model_dump() for p in plans], request)


@router.post("/investments", status_code=201)
async def open_investment(
    body: OpenInvestmentRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    contract = await _service.open_investment(
        db, auth.account_id, body.plan_id, body.amount_cents
    )
    return success_response(ContractResponse.from_domain(contract).model_dump(), request)


@router.get("/investments")
async def list_investments(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: ContractStatus | None = Query(None, description="Filter by contract status"),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    contracts = await _service.list_contracts(
        db, auth.account_id, status.value if status else None, limit
    )
    return success_response(
        [ContractResponse.from_domain(c).model_dump() for c in contracts], request
    )


@router.get("/investments/{contract_id}")
async def get_investment(
    contract_id: str,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    owner = None if auth.is_admin else auth.account_id
    contract = await _service.get_contract(db, contract_id, owner)
    return success_response(ContractResponse.from_domain(contract).model_dump(), request)
