# backend/tests/conftest.py
"""
Pytest configuration.

CRITICAL: the environment is set BEFORE any trailbook import so settings,
the engine and the Celery app are built against the in-memory test setup.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-for-trailbook-suite-0123456789"
os.environ["CHAT_BROADCAST_ENABLED"] = "false"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ.setdefault("CI", "1")

from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.orm import Session

from trailbook.core.ulid_helper import generate_ulid
from trailbook.database import Base, SessionLocal, engine, init_db
from trailbook.models.album import Album, AlbumFavorite, Media
from trailbook.models.reflection import Reflection, ReflectionReason
from trailbook.models.user_profile import UserProfile
from trailbook.schemas.connection_request import RequestDecision
from trailbook.services.connection_request_service import ConnectionRequestService
from trailbook.services.task_dispatcher import TaskDispatcher


@pytest.fixture(autouse=True)
def _fresh_schema():
    """Every test starts from empty tables."""
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture
def db() -> Session:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Users and profiles
# ============================================================================


def _make_profile(db: Session, full_name: Optional[str], **fields: Any) -> str:
    user_id = generate_ulid()
    db.add(UserProfile(user_id=user_id, full_name=full_name, **fields))
    db.commit()
    return user_id


@pytest.fixture
def user_a(db: Session) -> str:
    return _make_profile(db, "Alice Trail")


@pytest.fixture
def user_b(db: Session) -> str:
    return _make_profile(db, "Bob Ridge")


@pytest.fixture
def user_c() -> str:
    """A user without a stored profile."""
    return generate_ulid()


@pytest.fixture
def make_profile(db: Session):
    def _factory(full_name: Optional[str] = None, **fields: Any) -> str:
        return _make_profile(db, full_name, **fields)

    return _factory


# ============================================================================
# Relationship helpers
# ============================================================================


@pytest.fixture
def connect_users(db: Session):
    """Create and accept a connection request between two users."""

    def _connect(requester_id: str, recipient_id: str):
        service = ConnectionRequestService(db)
        request = service.send_request(requester_id, recipient_id)
        return service.respond(recipient_id, request.id, RequestDecision.ACCEPT)

    return _connect


@pytest.fixture
def album_graph(db: Session):
    """Builders for albums, media, favorites and reflections."""

    class _Graph:
        def album(self, owner_id: str, title: str = "Trail", **fields: Any) -> Album:
            album = Album(user_id=owner_id, title=title, **fields)
            db.add(album)
            db.commit()
            return album

        def media(self, album: Album, **fields: Any) -> Media:
            media = Media(album_id=album.id, url=f"https://cdn.example.com/{generate_ulid()}.jpg", **fields)
            db.add(media)
            db.commit()
            return media

        def favorite(self, user_id: str, album: Album) -> AlbumFavorite:
            favorite = AlbumFavorite(user_id=user_id, album_id=album.id)
            db.add(favorite)
            db.commit()
            return favorite

        def reflect(
            self,
            user_id: str,
            media: Media,
            reason: ReflectionReason = ReflectionReason.MOMENT,
            is_anonymous: bool = False,
        ) -> Reflection:
            reflection = Reflection(
                user_id=user_id, media_id=media.id, reason=reason, is_anonymous=is_anonymous
            )
            db.add(reflection)
            db.commit()
            return reflection

    return _Graph()


@pytest.fixture
def eligible_pair(user_a: str, user_b: str, album_graph):
    """
    A and B each own an album, favorite the other's album and reflect on a
    media item inside it.
    """
    album_a = album_graph.album(user_a, "Alice's coast")
    album_b = album_graph.album(user_b, "Bob's ridge")
    media_a = album_graph.media(album_a)
    media_b = album_graph.media(album_b)
    album_graph.favorite(user_a, album_b)
    album_graph.favorite(user_b, album_a)
    reflection_ab = album_graph.reflect(user_a, media_b)
    reflection_ba = album_graph.reflect(user_b, media_a)
    return {
        "album_a": album_a,
        "album_b": album_b,
        "media_a": media_a,
        "media_b": media_b,
        "reflection_ab": reflection_ab,
        "reflection_ba": reflection_ba,
    }


# ============================================================================
# Task publishing
# ============================================================================


class RecordingPublisher:
    """Stands in for Celery publishing; records every call."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail_with: Optional[Exception] = None

    def __call__(self, task_name: str, args: Any = None, kwargs: Any = None, **options: Any) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append(
            {
                "task": task_name,
                "payload": args[0] if args else None,
                "queue": options.get("queue"),
                "headers": options.get("headers") or {},
                "countdown": options.get("countdown"),
            }
        )

    def to_queue(self, queue: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["queue"] == queue]


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def dispatcher(publisher: RecordingPublisher) -> TaskDispatcher:
    return TaskDispatcher(publisher=publisher)
