"""
Authentication Module

Optional bearer-token authentication. When a secret is configured every
route requires `Authorization: Bearer <secret>`; otherwise all requests pass.
"""

import logging
from typing import Optional

from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import Unauthorized

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


async def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[HTTPAuthorizationCredentials]:
    """
    Verify the bearer token against the configured key set.

    Raises:
        Unauthorized: token missing or not in the key set
    """
    keys = request.app.state.bearer_keys
    if not keys:
        # Auth not configured
        return credentials

    if credentials is None:
        raise Unauthorized("Missing authorization header")

    if credentials.credentials not in keys:
        logger.warning(f"Rejected request to {request.url.path} with invalid token")
        raise Unauthorized("Invalid authentication token")

    return credentials
