"""Unit tests for JWT handler and auth dependencies."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from config.settings import settings
from src.iv_common.enums import Role
from src.iv_common.errors import ForbiddenError, InvalidTokenError
from src.iv_gateway.auth.context import AuthContext
from src.iv_gateway.auth.dependencies import get_auth_context, require_admin
from src.iv_gateway.auth.jwt_handler import create_access_token, decode_token


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def _encode(claims: dict) -> str:
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_access_token_contains_correct_claims() -> None:
    token = create_access_token("acct-123", Role.ADMIN)
    payload = jwt.get_unverified_claims(token)
    assert payload["sub"] == "acct-123"
    assert payload["role"] == "ADMIN"
    assert payload["type"] == "access"


def test_decode_valid_token() -> None:
    payload = decode_token(create_access_token("acct-abc"))
    assert payload["sub"] == "acct-abc"
    assert payload["role"] == "USER"


def test_expired_token_raises() -> None:
    past = datetime.now(UTC) - timedelta(minutes=5)
    token = _encode({"sub": "acct", "type": "access", "exp": past})
    with pytest.raises(InvalidTokenError):
        decode_token(token)


def test_wrong_secret_raises() -> None:
    token = jwt.encode({"sub": "acct", "type": "access"}, "other-secret", algorithm="HS256")
    with pytest.raises(InvalidTokenError):
        decode_token(token)


def test_wrong_type_raises() -> None:
    token = _encode({"sub": "acct", "type": "refresh"})
    with pytest.raises(InvalidTokenError):
        decode_token(token)


def test_garbage_token_raises() -> None:
    with pytest.raises(InvalidTokenError):
        decode_token("not.a.jwt")


class TestGetAuthContext:
    async def test_resolves_account_and_role(self) -> None:
        auth = await get_auth_context(_bearer(create_access_token("acct-1", Role.ADMIN)))
        assert auth == AuthContext(account_id="acct-1", role=Role.ADMIN)
        assert auth.is_admin

    async def test_missing_role_defaults_to_user(self) -> None:
        auth = await get_auth_context(_bearer(_encode({"sub": "acct-2", "type": "access"})))
        assert auth.role == Role.USER

    async def test_missing_credentials(self) -> None:
        with pytest.raises(InvalidTokenError):
            await get_auth_context(None)

    async def test_missing_subject(self) -> None:
        with pytest.raises(InvalidTokenError):
            await get_auth_context(_bearer(_encode({"type": "access"})))

    async def test_unknown_role(self) -> None:
        token = _encode({"sub": "acct", "type": "access", "role": "ROOT"})
        with pytest.raises(InvalidTokenError):
            await get_auth_context(_bearer(token))


class TestRequireAdmin:
    async def test_admin_passes(self) -> None:
        auth = AuthContext("admin-1", Role.ADMIN)
        assert await require_admin(auth) is auth

    async def test_user_forbidden(self) -> None:
        with pytest.raises(ForbiddenError):
            await require_admin(AuthContext("user-1", Role.USER))
