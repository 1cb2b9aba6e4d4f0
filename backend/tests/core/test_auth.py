"""Tests for access token verification."""

from datetime import timedelta

import pytest

from trailbook.auth import create_access_token, strip_bearer, verify_access_token
from trailbook.core.exceptions import UnauthorizedException
from trailbook.core.ulid_helper import generate_ulid


def test_round_trip_resolves_user_id():
    user_id = generate_ulid()
    assert verify_access_token(create_access_token(user_id)) == user_id


@pytest.mark.parametrize(
    "value,expected",
    [("Bearer abc", "abc"), ("bearer   abc ", "abc"), ("abc", "abc"), ("Bearer ", None), (None, None)],
)
def test_strip_bearer(value, expected):
    assert strip_bearer(value) == expected


def test_missing_token():
    with pytest.raises(UnauthorizedException) as exc_info:
        verify_access_token(None)
    assert exc_info.value.code == "NOT_AUTHENTICATED"


def test_expired_token():
    token = create_access_token(generate_ulid(), expires_delta=timedelta(seconds=-5))
    with pytest.raises(UnauthorizedException) as exc_info:
        verify_access_token(token)
    assert exc_info.value.message == "Invalid token"


def test_wrong_signature():
    import jwt

    token = jwt.encode({"sub": generate_ulid()}, "another-secret-that-is-long-enough-for-hs256", algorithm="HS256")
    with pytest.raises(UnauthorizedException):
        verify_access_token(token)


def test_subject_must_be_user_id():
    with pytest.raises(UnauthorizedException) as exc_info:
        verify_access_token(create_access_token("not-a-ulid"))
    assert exc_info.value.message == "Invalid user"
