"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.iv_account.api.router import router as account_router
from src.iv_admin.api.router import router as admin_router
from src.iv_common.database import async_session_factory, engine
from src.iv_common.errors import AppError
from src.iv_common.redis_client import close_redis, get_redis
from src.iv_common.response import error_response
from src.iv_gateway.middleware.request_log import RequestLogMiddleware
from src.iv_investment.api.router import router as investment_router
from src.iv_investment.application.service import InvestmentService
from src.iv_notify.sinks import build_sink
from src.iv_referral.api.router import router as referral_router
from src.iv_scheduler.lease import RedisCycleLease
from src.iv_scheduler.scheduler import MaturityScheduler
from src.iv_workflow.api.router import router as workflow_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def build_scheduler() -> MaturityScheduler:
    return MaturityScheduler(
        async_session_factory,
        InvestmentService(notifier=build_sink()),
        interval_seconds=settings.MATURITY_SWEEP_INTERVAL_SECONDS,
        concurrency=settings.MATURITY_SWEEP_CONCURRENCY,
        batch_limit=settings.MATURITY_SWEEP_BATCH_LIMIT,
        lease=RedisCycleLease(ttl_seconds=settings.MATURITY_SWEEP_INTERVAL_SECONDS),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start the maturity scheduler. Shutdown: reverse."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    scheduler: MaturityScheduler = app.state.maturity_scheduler
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    yield
    await scheduler.stop()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Built eagerly so the admin sweep endpoint works with the loop disabled
app.state.maturity_scheduler = build_scheduler()

app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, request)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(account_router, prefix="/api/v1")
app.include_router(workflow_router, prefix="/api/v1")
app.include_router(investment_router, prefix="/api/v1")
app.include_router(referral_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
