"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from delivery_backend.app.core.exceptions import AuthenticationError, TokenRevokedError
from delivery_backend.app.core.jwt import decode_access_token
from delivery_backend.app.core.token_revocation import is_token_revoked

# HTTP Bearer security scheme; missing credentials are reported as our 401
security = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return credentials.credentials


async def get_current_user(token: str = Depends(get_bearer_token)) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Checks:
    1. Validates JWT token signature and expiry
    2. Requires the user_id and role claims
    3. Checks if the token has been explicitly revoked (logout)

    Returns:
        Decoded token payload containing user information

    Raises:
        AuthenticationError: 401 if the token is invalid
        TokenRevokedError: 401 if the token was revoked
    """
    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    if not payload.get("user_id") or not payload.get("role"):
        raise AuthenticationError("Invalid token payload")

    # Identity provider ids may be numeric; orders store them as strings
    payload["user_id"] = str(payload["user_id"])

    if await is_token_revoked(token):
        raise TokenRevokedError()

    return payload
