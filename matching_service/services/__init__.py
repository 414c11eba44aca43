from .access_service import AccessService, get_access_service
from .interaction_service import InteractionService, get_interaction_service
from .match_service import MatchService, get_match_service
from .profile_service import ProfileService, get_profile_service

__all__ = [
    "AccessService",
    "InteractionService",
    "MatchService",
    "ProfileService",
    "get_access_service",
    "get_interaction_service",
    "get_match_service",
    "get_profile_service",
]
