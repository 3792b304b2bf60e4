"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session. The tier is skipped when Postgres is unreachable or
the schema has not been migrated (``alembic upgrade head``).
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from src.iv_common.database import engine
from src.iv_common.enums import Role
from src.iv_gateway.auth.jwt_handler import create_access_token
from src.main import app


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def database_ready() -> None:
    """Skip the whole tier unless the migrated ledger schema is reachable."""
    try:
        async with engine.connect() as conn:
            migrated = await conn.scalar(text("SELECT to_regclass('referral_edges')"))
    except (OSError, DBAPIError) as exc:
        pytest.skip(f"Postgres unavailable: {exc}")
    if migrated is None:
        pytest.skip("Schema not migrated; run alembic upgrade head")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client that keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    token = create_access_token("it-admin", Role.ADMIN)
    return {"Authorization": f"Bearer {token}"}
