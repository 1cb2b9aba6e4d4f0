"""
Repository layer for the Trailbook platform.

Repositories own all SQLAlchemy queries; services own transactions.
"""

from .base_repository import BaseRepository
from .connection_request_repository import ConnectionRequestRepository
from .eligibility_repository import EligibilityRepository
from .factory import RepositoryFactory
from .message_repository import MessageRepository
from .trail_connection_repository import TrailConnectionRepository
from .user_profile_repository import UserProfileRepository

__all__ = [
    "BaseRepository",
    "ConnectionRequestRepository",
    "EligibilityRepository",
    "MessageRepository",
    "RepositoryFactory",
    "TrailConnectionRepository",
    "UserProfileRepository",
]
