"""Exceptions raised by the user and match repositories."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from pymongo.errors import DuplicateKeyError, PyMongoError


class RepositoryError(RuntimeError):
    """A store read or write failed; the driver error is chained as ``__cause__``."""


class DuplicateKeyRepositoryError(RepositoryError):
    """An insert collided with a unique index (for matches: the pair key)."""


class NotFoundRepositoryError(RepositoryError):
    """The addressed user or match document does not exist."""


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate driver exceptions raised inside the block into repository errors."""
    try:
        yield
    except DuplicateKeyError as exc:
        raise DuplicateKeyRepositoryError(f"{operation}: duplicate key") from exc
    except PyMongoError as exc:
        raise RepositoryError(f"{operation} failed: {exc}") from exc


__all__ = [
    "DuplicateKeyRepositoryError",
    "NotFoundRepositoryError",
    "RepositoryError",
    "store_errors",
]
