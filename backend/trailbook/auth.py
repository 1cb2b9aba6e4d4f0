# backend/trailbook/auth.py
"""
Access token verification.

Tokens are issued by the external auth service (OTP login); this backend only
verifies them. The ``sub`` claim carries the caller's user id (a ULID).
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

import jwt
from jwt import PyJWTError

from .core.config import settings
from .core.exceptions import UnauthorizedException
from .core.ulid_helper import is_valid_ulid

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def strip_bearer(value: Optional[str]) -> Optional[str]:
    """Return the token from ``Bearer <token>`` (or a bare token); None when empty."""
    if not value:
        return None
    value = value.strip()
    if value.lower().startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX) :].strip()
    return value or None


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode a JWT access token, enforcing the issuer when one is configured."""
    options: Dict[str, Any] = {"verify_aud": False}
    kwargs: Dict[str, Any] = {}
    if settings.jwt_issuer:
        kwargs["issuer"] = settings.jwt_issuer
    payload_raw = jwt.decode(
        token,
        _secret_value(settings.jwt_secret_key),
        algorithms=[settings.jwt_algorithm],
        options=options,
        **kwargs,
    )
    return cast(Dict[str, Any], payload_raw)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for ``user_id``.

    Used by tooling and tests; production tokens come from the auth service.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode: Dict[str, Any] = {"sub": user_id, "exp": expire}
    if settings.jwt_issuer:
        to_encode["iss"] = settings.jwt_issuer
    return cast(
        str,
        jwt.encode(to_encode, _secret_value(settings.jwt_secret_key), algorithm=settings.jwt_algorithm),
    )


def verify_access_token(token: Optional[str]) -> str:
    """
    Resolve a bearer token to the caller's user id.

    Raises:
        UnauthorizedException: missing, invalid or expired token, or a token
            whose ``sub`` is not a user id
    """
    if not token:
        raise UnauthorizedException("Authentication required", code="NOT_AUTHENTICATED")

    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise UnauthorizedException("Invalid token", code="INVALID_TOKEN") from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not is_valid_ulid(user_id):
        logger.warning("Token payload missing a valid 'sub' field")
        raise UnauthorizedException("Invalid user", code="INVALID_TOKEN")
    return user_id
