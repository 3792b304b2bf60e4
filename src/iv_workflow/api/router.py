"""iv_workflow REST API: users file requests, admins decide them."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.iv_account.application.schemas import TransactionItem
from src.iv_common.database import get_db_session
from src.iv_common.errors import TransactionNotFoundError
from src.iv_common.response import ApiResponse, success_response
from src.iv_gateway.auth.context import AuthContext
from src.iv_gateway.auth.dependencies import get_auth_context
from src.iv_notify.sinks import build_sink
from src.iv_workflow.application.schemas import CreateRequestBody
from src.iv_workflow.application.service import ApprovalWorkflowService

router = APIRouter(prefix="/requests", tags=["requests"])

_service = ApprovalWorkflowService(notifier=build_sink())


@router.post("", status_code=201)
async def create_request(
    body: CreateRequestBody,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    account_id = body.account_id if auth.is_admin and body.account_id else auth.account_id
    record = await _service.create_request(
        db, account_id, body.kind, body.amount_cents, body.merged_details(), auth.role
    )
    return success_response(TransactionItem.from_domain(record).model_dump(), request)


@router.get("/{transaction_id}")
async def get_request(
    transaction_id: int,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    record = await _service.get_request(db, transaction_id)
    # Other accounts' requests are reported as missing, not forbidden
    if record.account_id != auth.account_id and not auth.is_admin:
        raise TransactionNotFoundError(transaction_id)
    return success_response(TransactionItem.from_domain(record).model_dump(), request)
