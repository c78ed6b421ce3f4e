"""
OrganizationMembership model synced from Clerk.

organization_id and user_id are internal surrogate keys, resolved from the
Clerk IDs in the payload before the row is written. A membership row is only
written once both referenced rows exist locally.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import ClerkEntityMixin, JSONDocument

if TYPE_CHECKING:
    from src.models.organization import Organization
    from src.models.user import User


class OrganizationMembership(Base, ClerkEntityMixin):
    """Link between a user and an organization, with the Clerk role."""

    __tablename__ = "organization_memberships"

    organization_id = Column(
        String(36),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True,
        comment="Organization ID (FK to organizations.id)"
    )

    user_id = Column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="User ID (FK to users.id)"
    )

    role = Column(
        String(255),
        nullable=False,
        comment="Clerk role key (e.g., org:admin)"
    )

    role_name = Column(String(255), nullable=True)

    permissions = Column(
        JSONDocument,
        nullable=True,
        comment="Ordered list of permission keys; null and [] are distinct"
    )

    public_metadata = Column(JSONDocument, nullable=True)
    private_metadata = Column(JSONDocument, nullable=True)

    organization = relationship("Organization", back_populates="memberships")
    user = relationship("User", back_populates="memberships")

    def __repr__(self) -> str:
        return (
            f"<OrganizationMembership(id={self.id}, clerk_id={self.clerk_id}, "
            f"organization_id={self.organization_id}, user_id={self.user_id}, role={self.role})>"
        )
