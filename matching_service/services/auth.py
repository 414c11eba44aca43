"""Caller identity: bearer tokens minted by the identity provider.

This service never issues credentials; it only verifies HS256 tokens and
threads the resulting caller id through every operation.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import jwt

from ..config import get_settings
from ..models.identifiers import clean_record_id
from .errors import PermissionDenied, Unauthenticated


class CallerAuthenticator:
    def __init__(self, secret: str, *, audience: Optional[str] = None) -> None:
        self._secret = secret
        self._audience = audience or None

    def decode_token(self, token: str) -> Dict[str, Any]:
        if not self._secret:
            raise Unauthenticated("token verification is not configured")
        try:
            options = {"require": ["sub", "exp"]}
            if self._audience:
                return jwt.decode(
                    token,
                    self._secret,
                    algorithms=["HS256"],
                    audience=self._audience,
                    options=options,
                )
            return jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                options={**options, "verify_aud": False},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("token expired") from None
        except jwt.InvalidTokenError:
            raise Unauthenticated("invalid token") from None

    def caller_id(self, token: str) -> str:
        payload = self.decode_token(token)
        try:
            return clean_record_id(payload.get("sub"))
        except ValueError:
            raise Unauthenticated("token subject is not a valid user id") from None


def resolve_actor(caller_id: str, claimed_actor_id: Optional[str]) -> str:
    """Return the acting user id, rejecting a body that names someone else."""
    if claimed_actor_id is not None and claimed_actor_id != caller_id:
        raise PermissionDenied("currentUserId does not match the authenticated caller")
    return caller_id


def get_authenticator() -> CallerAuthenticator:
    settings = get_settings()
    return CallerAuthenticator(settings.jwt_secret, audience=settings.jwt_audience)


__all__ = ["CallerAuthenticator", "get_authenticator", "resolve_actor"]
