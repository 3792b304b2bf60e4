"""Response envelope shared by every endpoint.

    {"code": 0, "message": "success", "data": {...},
     "timestamp": "2026-03-01T12:00:00+00:00", "request_id": "req_1a2b3c4d5e6f"}

``code`` is 0 on success and the AppError code otherwise; ``data`` is null
on error. The request id matches the one RequestLogMiddleware logged.
"""

import uuid
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field

from src.iv_common.datetime_utils import utc_now


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    request_id: str = Field(default_factory=new_request_id)


def _envelope(code: int, message: str, data: Any, request: Request | None) -> ApiResponse:
    request_id = getattr(request.state, "request_id", None) if request is not None else None
    if request_id is None:
        return ApiResponse(code=code, message=message, data=data)
    return ApiResponse(code=code, message=message, data=data, request_id=request_id)


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    return _envelope(0, "success", data, request)


def error_response(code: int, message: str, request: Request | None = None) -> ApiResponse:
    return _envelope(code, message, None, request)
