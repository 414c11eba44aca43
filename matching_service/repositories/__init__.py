"""Repository layer to abstract MongoDB access patterns."""

from .matches import MatchRepository
from .users import UserRepository

__all__ = ["MatchRepository", "UserRepository"]
