"""Tests for the connection eligibility engine."""

import pytest

from trailbook.core.exceptions import ValidationException
from trailbook.models.reflection import Reflection
from trailbook.services.eligibility_service import (
    REASON_NO_BIDIRECTIONAL_REFLECTIONS,
    REASON_NO_MUTUAL_FAVORITES,
    REASON_ONE_SIDED_FAVORITES,
    REASON_SELF,
    EligibilityService,
)


@pytest.fixture
def service(db):
    return EligibilityService(db)


def test_mutual_favorites_and_reflections_are_eligible(service, user_a, user_b, eligible_pair):
    result = service.check_connection_eligibility(user_a, user_b)

    assert result.eligible is True
    assert result.reflection_count == 2
    assert result.reasons == []
    assert {album.id for album in result.mutual_albums} == {
        eligible_pair["album_a"].id,
        eligible_pair["album_b"].id,
    }


def test_removing_one_reflection_breaks_eligibility(service, db, user_a, user_b, eligible_pair):
    db.delete(db.get(Reflection, eligible_pair["reflection_ab"].id))
    db.commit()

    result = service.check_connection_eligibility(user_a, user_b)

    assert result.eligible is False
    assert result.reasons == [REASON_NO_BIDIRECTIONAL_REFLECTIONS]
    assert "bidirectional reflections" in result.reasons[0]


def test_result_is_symmetric(service, user_a, user_b, eligible_pair, album_graph):
    # Extra evidence on one side only
    album_graph.reflect(user_a, album_graph.media(eligible_pair["album_b"]))

    forward = service.check_connection_eligibility(user_a, user_b)
    backward = service.check_connection_eligibility(user_b, user_a)

    assert forward.eligible == backward.eligible
    assert forward.reflection_count == backward.reflection_count == 3
    assert [a.id for a in forward.mutual_albums] == [a.id for a in backward.mutual_albums]


def test_symmetric_when_ineligible(service, user_a, user_b, album_graph):
    album_b = album_graph.album(user_b)
    album_graph.favorite(user_a, album_b)
    album_graph.favorite(user_b, album_b)

    forward = service.check_connection_eligibility(user_a, user_b)
    backward = service.check_connection_eligibility(user_b, user_a)

    assert forward.model_dump() == backward.model_dump()


def test_self_pairing_is_ineligible(service, user_a, eligible_pair):
    result = service.check_connection_eligibility(user_a, user_a)

    assert result.eligible is False
    assert result.reasons == [REASON_SELF]


def test_no_favorites_across_the_pair(service, user_a, user_b, album_graph):
    """Favoriting your own album is not evidence of anything."""
    album_graph.favorite(user_a, album_graph.album(user_a))
    album_graph.favorite(user_b, album_graph.album(user_b))

    result = service.check_connection_eligibility(user_a, user_b)

    assert result.eligible is False
    assert result.reasons == [REASON_NO_MUTUAL_FAVORITES]
    assert result.mutual_albums == []


def test_one_sided_favorite_is_insufficient(service, user_a, user_b, album_graph):
    """A favorited B's album but B never favorited anything of A's."""
    album_b = album_graph.album(user_b)
    album_graph.favorite(user_a, album_b)
    album_graph.favorite(user_b, album_b)
    album_graph.reflect(user_a, album_graph.media(album_b))

    result = service.check_connection_eligibility(user_a, user_b)

    assert result.eligible is False
    assert result.reasons == [REASON_ONE_SIDED_FAVORITES]
    assert [album.id for album in result.mutual_albums] == [album_b.id]


def test_anonymous_reflections_count(service, db, user_a, user_b, eligible_pair, album_graph):
    db.delete(db.get(Reflection, eligible_pair["reflection_ab"].id))
    db.commit()
    album_graph.reflect(user_a, eligible_pair["media_b"], is_anonymous=True)

    result = service.check_connection_eligibility(user_a, user_b)

    assert result.eligible is True
    assert result.reflection_count == 2


def test_reflections_on_deleted_media_do_not_count(service, db, user_a, user_b, eligible_pair):
    eligible_pair["media_b"].is_deleted = True
    db.commit()

    result = service.check_connection_eligibility(user_a, user_b)

    assert result.eligible is False
    assert result.reasons == [REASON_NO_BIDIRECTIONAL_REFLECTIONS]


def test_reflection_on_any_album_of_the_owner_counts(service, db, user_a, user_b, eligible_pair, album_graph):
    """The reflection need not be inside a mutually favorited album."""
    db.delete(db.get(Reflection, eligible_pair["reflection_ab"].id))
    db.commit()
    other_album_b = album_graph.album(user_b, "Bob's other trail")
    album_graph.reflect(user_a, album_graph.media(other_album_b))

    result = service.check_connection_eligibility(user_a, user_b)

    assert result.eligible is True


def test_deleted_albums_are_not_listed(service, db, user_a, user_b, eligible_pair, album_graph):
    extra = album_graph.album(user_b, "Archived")
    album_graph.favorite(user_a, extra)
    album_graph.favorite(user_b, extra)
    extra.is_deleted = True
    db.commit()

    result = service.check_connection_eligibility(user_a, user_b)

    assert extra.id not in {album.id for album in result.mutual_albums}
    assert result.eligible is True


def test_engine_has_no_side_effects(service, db, user_a, user_b, eligible_pair):
    from trailbook.models.trail_connection import TrailConnection

    service.check_connection_eligibility(user_a, user_b)

    assert db.query(TrailConnection).count() == 0


def test_malformed_id_is_invalid_argument(service, user_a):
    with pytest.raises(ValidationException):
        service.check_connection_eligibility(user_a, "nope")
