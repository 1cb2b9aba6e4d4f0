"""Schemas for eligibility and trail connections."""

from datetime import datetime
from typing import List, Optional

from ._strict_base import StrictModel
from .profile import UserSummary


class AlbumSummary(StrictModel):
    id: str
    title: str
    cover_image: Optional[str] = None


class EligibilityResult(StrictModel):
    eligible: bool
    mutual_albums: List[AlbumSummary] = []
    reflection_count: int = 0
    reasons: List[str] = []


class ConnectResult(StrictModel):
    connected: bool
    message: str
    connection_id: Optional[str] = None


class WalkedTogetherItem(StrictModel):
    connection_id: str
    user_id: str
    user: Optional[UserSummary] = None
    mutual_albums: List[AlbumSummary] = []
    reflection_count: int
    connected_at: datetime


class ConnectionDetails(WalkedTogetherItem):
    eligibility: EligibilityResult
