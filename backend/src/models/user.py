"""
User model synced from Clerk.

CRITICAL SECURITY:
- NO PASSWORDS are stored locally - Clerk is the source of truth for auth
- clerk_id is the unique identifier from Clerk
- Rows are written only by the webhook upsert engine (user.created / user.updated)
- user.deleted sets deleted_at; the row stays so historical memberships keep their FK
"""

from typing import TYPE_CHECKING

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import ClerkEntityMixin, JSONDocument

if TYPE_CHECKING:
    from src.models.organization_membership import OrganizationMembership


class User(Base, ClerkEntityMixin):
    """
    Local user record synced from Clerk.

    Profile fields and the three metadata documents (public, private, unsafe)
    are copied verbatim from the Clerk payload on every user event.
    """

    __tablename__ = "users"

    # Profile Information (synced from Clerk)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)

    email = Column(
        String(320),
        nullable=True,
        index=True,
        comment="Primary email address (null when Clerk designates none)"
    )

    image_url = Column(String(1024), nullable=True)
    has_image = Column(Boolean, nullable=True, default=False)
    username = Column(String(255), nullable=True)

    # Account flags
    password_enabled = Column(Boolean, nullable=True, default=False)
    two_factor_enabled = Column(Boolean, nullable=True, default=False)
    banned = Column(Boolean, nullable=True, default=False)
    locked = Column(Boolean, nullable=True, default=False)

    external_id = Column(String(255), nullable=True)

    # Metadata documents (opaque, passed through verbatim)
    public_metadata = Column(JSONDocument, nullable=True)
    private_metadata = Column(JSONDocument, nullable=True)
    unsafe_metadata = Column(JSONDocument, nullable=True)

    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
    last_active_at = Column(DateTime(timezone=True), nullable=True)

    memberships = relationship(
        "OrganizationMembership",
        back_populates="user",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, clerk_id={self.clerk_id}, email={self.email})>"
