"""
Organization model synced from Clerk.

created_by holds the Clerk user ID of the creator. It is not a foreign key:
the creator may never be synced locally.
"""

from sqlalchemy import Column, String, Boolean, Integer
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import ClerkEntityMixin, JSONDocument


class Organization(Base, ClerkEntityMixin):
    """Local organization record synced from Clerk."""

    __tablename__ = "organizations"

    name = Column(
        String(255),
        nullable=False,
        comment="Display name of the organization"
    )

    slug = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="URL-friendly identifier (e.g., 'acme-agency')"
    )

    image_url = Column(String(1024), nullable=True)
    has_image = Column(Boolean, nullable=True, default=False)

    created_by = Column(
        String(255),
        nullable=True,
        comment="Clerk user ID of the creator (not a foreign key)"
    )

    max_allowed_memberships = Column(Integer, nullable=True)
    members_count = Column(Integer, nullable=True, default=0)
    pending_invitations_count = Column(Integer, nullable=True, default=0)
    admin_delete_enabled = Column(Boolean, nullable=True, default=True)

    public_metadata = Column(JSONDocument, nullable=True)
    private_metadata = Column(JSONDocument, nullable=True)

    memberships = relationship(
        "OrganizationMembership",
        back_populates="organization",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, clerk_id={self.clerk_id}, slug={self.slug})>"
