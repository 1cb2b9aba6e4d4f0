"""
Database models for the Trailbook platform.

- Albums, media, favorites and reflections (inputs to eligibility)
- Connection requests and trail connections (relationship graph)
- Messages (chat log)
- User profiles (display data and push registration)
"""

from .album import Album, AlbumFavorite, Media
from .connection_request import ConnectionRequest, ConnectionRequestStatus
from .message import Message
from .reflection import Reflection, ReflectionReason
from .trail_connection import TrailConnection
from .user_profile import UserProfile

__all__ = [
    "Album",
    "AlbumFavorite",
    "ConnectionRequest",
    "ConnectionRequestStatus",
    "Media",
    "Message",
    "Reflection",
    "ReflectionReason",
    "TrailConnection",
    "UserProfile",
]
