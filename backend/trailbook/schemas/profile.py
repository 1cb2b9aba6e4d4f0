from typing import TYPE_CHECKING, Optional

from ._strict_base import StrictModel

if TYPE_CHECKING:
    from ..models.user_profile import UserProfile


class UserSummary(StrictModel):
    """Counterpart profile attached to listings."""

    user_id: str
    full_name: Optional[str] = None
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: Optional["UserProfile"]) -> Optional["UserSummary"]:
        if profile is None:
            return None
        return cls(
            user_id=profile.user_id,
            full_name=profile.full_name,
            profile_picture=profile.profile_picture,
            bio=profile.bio,
            location=profile.location,
        )
