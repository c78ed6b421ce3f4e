"""
OrganizationDomain model.

Schema only: organizationDomain.* events are acknowledged but not persisted.
"""

from sqlalchemy import Column, String, Integer, ForeignKey

from src.db_base import Base
from src.models.base import ClerkEntityMixin, JSONDocument


class OrganizationDomain(Base, ClerkEntityMixin):
    """Verified or pending email domain attached to an organization."""

    __tablename__ = "organization_domains"

    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    enrollment_mode = Column(String(50), nullable=True)
    affiliation_email_address = Column(String(320), nullable=True)
    verification = Column(JSONDocument, nullable=True)
    total_pending_invitations = Column(Integer, nullable=True, default=0)
    total_pending_suggestions = Column(Integer, nullable=True, default=0)

    def __repr__(self) -> str:
        return f"<OrganizationDomain(id={self.id}, clerk_id={self.clerk_id}, name={self.name})>"
