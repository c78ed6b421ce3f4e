"""
Authentication module for Clerk session tokens.

This module provides:
- Session token verification (PEM key or Clerk JWKS)
- FastAPI dependencies for route-level authentication

SECURITY NOTES:
- Clerk is the ONLY authentication authority
- NO custom tokens are issued by this application
"""

from src.auth.clerk_verifier import ClerkSessionVerifier, ClerkVerificationError, SessionPrincipal
from src.auth.dependencies import (
    AuthOrganization,
    AuthUser,
    get_current_org,
    get_current_user,
    require_session,
)

__all__ = [
    # Verifier
    "ClerkSessionVerifier",
    "ClerkVerificationError",
    "SessionPrincipal",
    # Dependencies
    "AuthOrganization",
    "AuthUser",
    "get_current_org",
    "get_current_user",
    "require_session",
]
