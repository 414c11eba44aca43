from fastapi import Depends, Header

from ..services.auth import CallerAuthenticator, get_authenticator
from ..services.errors import Unauthenticated


def _extract_token(authorization: str) -> str:
    if not authorization.lower().startswith("bearer "):
        raise Unauthenticated("missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise Unauthenticated("missing bearer token")
    return token


async def require_caller(
    authorization: str = Header(default=""),
    authenticator: CallerAuthenticator = Depends(get_authenticator),
) -> str:
    """Resolve the authenticated caller's user id from the bearer token."""
    if not authorization:
        raise Unauthenticated("authorization required")
    return authenticator.caller_id(_extract_token(authorization))


__all__ = ["require_caller"]
