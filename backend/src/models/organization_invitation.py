"""
OrganizationInvitation model.

Schema only: organizationInvitation.* events are acknowledged but not yet
persisted, so nothing writes to this table today.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey

from src.db_base import Base
from src.models.base import ClerkEntityMixin, JSONDocument


class OrganizationInvitation(Base, ClerkEntityMixin):
    """Pending or resolved invitation to join an organization."""

    __tablename__ = "organization_invitations"

    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    email_address = Column(String(320), nullable=False)
    role = Column(String(255), nullable=False)
    role_name = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    public_metadata = Column(JSONDocument, nullable=True)
    private_metadata = Column(JSONDocument, nullable=True)

    def __repr__(self) -> str:
        return f"<OrganizationInvitation(id={self.id}, clerk_id={self.clerk_id}, status={self.status})>"
