"""Structured error kinds returned by every service operation.

Codes follow the callable-function vocabulary the mobile client already
understands, so callers can branch on ``code`` and ``retryable`` instead of
parsing messages.
"""

from __future__ import annotations

from typing import Any, Dict


class ServiceError(Exception):
    code = "internal"
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "retryable": self.retryable,
            },
        }


class Unauthenticated(ServiceError):
    code = "unauthenticated"
    status_code = 401


class PermissionDenied(ServiceError):
    code = "permission-denied"
    status_code = 403


class NotFound(ServiceError):
    code = "not-found"
    status_code = 404


class InvalidArgument(ServiceError):
    code = "invalid-argument"
    status_code = 400


class FailedPrecondition(ServiceError):
    """The records are not in the state the operation requires."""

    code = "failed-precondition"
    status_code = 409


class Internal(ServiceError):
    """A store write failed, possibly after part of a multi-record unit."""

    code = "internal"
    status_code = 500


__all__ = [
    "FailedPrecondition",
    "Internal",
    "InvalidArgument",
    "NotFound",
    "PermissionDenied",
    "ServiceError",
    "Unauthenticated",
]
