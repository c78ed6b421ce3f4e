"""
Role, Permission and RolePermission models.

Schema only: role.* and permission.* events are acknowledged but not
persisted. RolePermission is the many-to-many junction between the two.
"""

from sqlalchemy import Column, String, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import ClerkEntityMixin


class Role(Base, ClerkEntityMixin):
    """Custom organization role defined in Clerk."""

    __tablename__ = "roles"

    key = Column(String(255), nullable=False, unique=True, comment="Role key (e.g., org:admin)")
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_creator_eligible = Column(Boolean, nullable=True, default=False)

    role_permissions = relationship("RolePermission", back_populates="role")

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, key={self.key})>"


class Permission(Base, ClerkEntityMixin):
    """Custom permission defined in Clerk."""

    __tablename__ = "permissions"

    key = Column(String(255), nullable=False, unique=True, comment="Permission key (e.g., org:invoices:read)")
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=True)

    role_permissions = relationship("RolePermission", back_populates="permission")

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, key={self.key})>"


class RolePermission(Base):
    """Junction row granting a permission to a role."""

    __tablename__ = "role_permissions"

    role_id = Column(String(36), ForeignKey("roles.id"), primary_key=True)
    permission_id = Column(String(36), ForeignKey("permissions.id"), primary_key=True)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission", back_populates="role_permissions")

    def __repr__(self) -> str:
        return f"<RolePermission(role_id={self.role_id}, permission_id={self.permission_id})>"
