"""
Bearer-token handling.

require_store_token - protects the artifact store routes. Validates the
    `Authorization: Bearer <token>` header against STORE_API_TOKEN with a
    constant-time compare. When STORE_API_TOKEN is empty, auth is disabled
    and a warning is logged on every request.

bearer_token - optional extraction for the analysis routes. The token is
    handed, as an explicit argument, to the persistence gateway; it is
    never validated or stored here.
"""
from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.errors import InvalidTokenError, NotAuthenticatedError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


def require_store_token(
    request: Request,
    token: Optional[str] = Depends(bearer_token),
) -> str:
    expected = settings.STORE_API_TOKEN
    if not expected:
        logger.warning(
            "STORE_API_TOKEN not set - artifact store authentication disabled for %s",
            request.url.path,
        )
        return "auth_disabled"

    if not token:
        logger.warning("Auth failed: no token provided for %s", request.url.path)
        raise NotAuthenticatedError()
    if not secrets.compare_digest(token, expected):
        logger.warning("Auth failed: invalid token for %s", request.url.path)
        raise InvalidTokenError()
    return token
