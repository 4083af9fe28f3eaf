"""
Authentication API endpoints.

Users sign in with the identity provider; this service only exposes who a
token belongs to and lets the holder revoke it.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from delivery_backend.app.db.session import get_db
from delivery_backend.app.schemas.auth import PrincipalResponse, LogoutResponse
from delivery_backend.app.core.dependencies import get_current_user, get_bearer_token
from delivery_backend.app.core.token_revocation import revoke_token
from delivery_backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=PrincipalResponse)
async def get_me(current_user: dict = Depends(get_current_user)):
    """
    Get the authenticated principal.

    Returns the claims the service acts on (user id, role).
    """
    return PrincipalResponse(
        user_id=current_user["user_id"],
        subject=current_user.get("sub"),
        role=current_user["role"],
        expires_at=current_user.get("exp"),
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    token: str = Depends(get_bearer_token),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Revoke the presented access token.

    Any later request with the same token gets 401 ERR_AUTH_002.
    """
    revoked = await revoke_token(token, current_user["user_id"], current_user.get("exp"))

    await log_event(
        db=db,
        action=AuditAction.TOKEN_REVOKED,
        actor_id=current_user["user_id"],
        actor_role=current_user.get("role"),
        resource_type="token",
        metadata={"revoked": revoked}
    )
    await db.commit()

    return LogoutResponse(
        message="Logged out" if revoked else "Logout could not be recorded; token stays valid until expiry",
        revoked=revoked
    )
