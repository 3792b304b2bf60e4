"""FastAPI dependencies: get_auth_context, require_admin.

Usage in any protected router:
    from src.iv_gateway.auth.dependencies import get_auth_context

    @router.get("/protected")
    async def protected(auth: AuthContext = Depends(get_auth_context)):
        ...
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.iv_common.enums import Role
from src.iv_common.errors import ForbiddenError, InvalidTokenError
from src.iv_gateway.auth.context import AuthContext
from src.iv_gateway.auth.jwt_handler import decode_token

# auto_error=False so a missing header goes through InvalidTokenError (401)
# and the unified envelope instead of Starlette's default 403.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthContext:
    """Resolve the caller from the Bearer token.

    Raises InvalidTokenError (401) if the token is missing, invalid, expired,
    has no subject or carries an unknown role.
    """
    if credentials is None:
        raise InvalidTokenError()

    payload = decode_token(credentials.credentials)
    account_id = payload.get("sub")
    if not account_id:
        raise InvalidTokenError()

    try:
        role = Role(payload.get("role", Role.USER.value))
    except ValueError:
        raise InvalidTokenError() from None
    return AuthContext(account_id=str(account_id), role=role)


async def require_admin(
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Verify the caller holds the ADMIN role. Raises ForbiddenError (403)."""
    if not auth.is_admin:
        raise ForbiddenError()
    return auth
