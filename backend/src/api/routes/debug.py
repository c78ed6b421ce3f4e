"""
Debug endpoint for checking the authenticated session.

Used by the frontend and operators to confirm that a Clerk session token is
accepted and which organization it is scoped to.
"""

import logging

from fastapi import APIRouter, Depends

from src.auth.dependencies import AuthOrganization, AuthUser, get_current_org, get_current_user

router = APIRouter(tags=["debug"])
logger = logging.getLogger(__name__)


@router.get("/debug/me")
def debug_me(
    user: AuthUser = Depends(get_current_user),
    org: AuthOrganization = Depends(get_current_org),
):
    """
    Return the caller's user and organization context.

    401 without a valid session token, 403 without an active organization.
    """
    logger.debug("Debug session lookup", extra={"user_id": user.user_id, "org_id": org.org_id})
    return {
        "user": user.model_dump(by_alias=True),
        "organization": org.model_dump(by_alias=True),
    }
