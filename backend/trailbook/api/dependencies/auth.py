# backend/trailbook/api/dependencies/auth.py
"""Authentication dependencies for HTTP routes."""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from ...auth import verify_access_token

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/verify-otp", auto_error=False)


async def get_current_user_id(token: Optional[str] = Depends(oauth2_scheme_optional)) -> str:
    """
    Resolve the caller's user id from the ``Authorization: Bearer`` header.

    Raises:
        UnauthorizedException: missing or invalid token
    """
    return verify_access_token(token)
