# backend/trailbook/repositories/factory.py
"""
Repository Factory for the Trailbook platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .connection_request_repository import ConnectionRequestRepository
    from .eligibility_repository import EligibilityRepository
    from .message_repository import MessageRepository
    from .trail_connection_repository import TrailConnectionRepository
    from .user_profile_repository import UserProfileRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_connection_request_repository(db: Session) -> "ConnectionRequestRepository":
        from .connection_request_repository import ConnectionRequestRepository

        return ConnectionRequestRepository(db)

    @staticmethod
    def create_trail_connection_repository(db: Session) -> "TrailConnectionRepository":
        from .trail_connection_repository import TrailConnectionRepository

        return TrailConnectionRepository(db)

    @staticmethod
    def create_eligibility_repository(db: Session) -> "EligibilityRepository":
        """Create the read-only repository over favorites and reflections."""
        from .eligibility_repository import EligibilityRepository

        return EligibilityRepository(db)

    @staticmethod
    def create_message_repository(db: Session) -> "MessageRepository":
        from .message_repository import MessageRepository

        return MessageRepository(db)

    @staticmethod
    def create_user_profile_repository(db: Session) -> "UserProfileRepository":
        from .user_profile_repository import UserProfileRepository

        return UserProfileRepository(db)
