"""
FastAPI dependencies for Clerk session authentication.

The session verifier is built from AppConfig at startup and stored on
app.state.session_verifier. Routes opt in per endpoint:

    @router.get("/protected")
    async def protected_route(user: AuthUser = Depends(get_current_user)):
        return {"user_id": user.user_id}

    @router.get("/org-data")
    async def org_route(org: AuthOrganization = Depends(get_current_org)):
        return {"org_id": org.org_id}

401 means the caller is not authenticated; 403 means the caller is
authenticated but has no active organization.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from src.auth.clerk_verifier import ClerkSessionVerifier, ClerkVerificationError, SessionPrincipal

logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)

# Clerk session cookie, used by same-site browser requests
SESSION_COOKIE_NAME = "__session"


class AuthUser(BaseModel):
    """Authenticated user of the current request."""

    user_id: str = Field(..., alias="userId")
    session_id: str = Field(..., alias="sessionId")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AuthOrganization(BaseModel):
    """Active organization of the current request."""

    org_id: str = Field(..., alias="orgId")
    org_slug: Optional[str] = Field(None, alias="orgSlug")
    org_role: Optional[str] = Field(None, alias="orgRole")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


def require_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> SessionPrincipal:
    """
    FastAPI dependency that requires a verified Clerk session.

    Raises HTTPException 401 when the token is missing or invalid, or when
    session verification is not configured.
    """
    token = _extract_token(request, credentials)
    if not token:
        raise _unauthorized("Missing authorization token")

    verifier: Optional[ClerkSessionVerifier] = getattr(request.app.state, "session_verifier", None)
    if verifier is None:
        logger.error("Session verification requested but Clerk keys are not configured")
        raise _unauthorized("Authentication not configured")

    try:
        principal = verifier.verify(token)
    except ClerkVerificationError as e:
        logger.warning(
            "Session token rejected",
            extra={"error_code": e.error_code, "path": request.url.path},
        )
        raise _unauthorized("Invalid or expired token")

    request.state.principal = principal
    return principal


def get_current_user(principal: SessionPrincipal = Depends(require_session)) -> AuthUser:
    """FastAPI dependency returning the authenticated user."""
    return AuthUser(user_id=principal.user_id, session_id=principal.session_id)


def get_current_org(principal: SessionPrincipal = Depends(require_session)) -> AuthOrganization:
    """
    FastAPI dependency returning the active organization.

    Raises HTTPException 403 when the session has no organization selected.
    """
    if not principal.has_organization:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization membership required. Please select an organization.",
        )
    return AuthOrganization(
        org_id=principal.org_id,
        org_slug=principal.org_slug,
        org_role=principal.org_role,
    )
