"""
Authentication Pydantic schemas.

Tokens are issued by the identity provider; these describe what the
service reads back out of them.
"""

from pydantic import BaseModel, Field
from typing import Optional
from delivery_backend.app.models.enums import UserRole


class PrincipalResponse(BaseModel):
    """
    Schema for the authenticated principal.

    Used by GET /auth/me endpoint.
    """
    user_id: str = Field(..., description="User id from the token")
    subject: Optional[str] = Field(default=None, description="Token subject (username or email)")
    role: UserRole = Field(..., description="User role")
    expires_at: Optional[int] = Field(default=None, description="Token expiry, unix seconds")


class LogoutResponse(BaseModel):
    message: str
    revoked: bool
