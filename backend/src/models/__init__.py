"""
Database models for the Clerk identity sync.

Importing this package registers every table with Base.metadata.
"""

from src.models.base import ClerkEntityMixin, generate_uuid
from src.models.user import User
from src.models.organization import Organization
from src.models.organization_membership import OrganizationMembership
from src.models.organization_invitation import OrganizationInvitation
from src.models.organization_domain import OrganizationDomain
from src.models.role import Role, Permission, RolePermission
from src.models.webhook_event import WebhookEvent

__all__ = [
    "ClerkEntityMixin",
    "generate_uuid",
    "User",
    "Organization",
    "OrganizationMembership",
    "OrganizationInvitation",
    "OrganizationDomain",
    "Role",
    "Permission",
    "RolePermission",
    "WebhookEvent",
]
