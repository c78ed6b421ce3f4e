"""
Base mixins and column types for the identity models.

Provides common functionality:
- generate_uuid: UUID generation for surrogate primary keys
- JSONDocument: JSON column type (JSONB on PostgreSQL)
- ClerkEntityMixin: surrogate id, clerk_id join key, provider timestamps, deleted_at
"""

import uuid

from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declared_attr

# Opaque documents; None is stored as SQL NULL, JSONB on PostgreSQL
JSONDocument = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def generate_uuid() -> str:
    """Generate a UUID4 string for use as a primary key default."""
    return str(uuid.uuid4())


class ClerkEntityMixin:
    """
    Columns shared by every entity synced from Clerk.

    - id is the internal surrogate key, stable across provider renames
    - clerk_id is the provider ID and the upsert conflict target
    - created_at / updated_at come from the provider payload, not the server
    - deleted_at marks soft deletion; rows are never removed
    """

    @declared_attr
    def id(cls):
        return Column(
            String(36),
            primary_key=True,
            default=generate_uuid,
            comment="Internal UUID primary key"
        )

    @declared_attr
    def clerk_id(cls):
        return Column(
            String(255),
            nullable=False,
            unique=True,
            index=True,
            comment="Clerk ID - immutable join key"
        )

    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            comment="Creation time reported by Clerk"
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            comment="Last update time reported by Clerk"
        )

    @declared_attr
    def deleted_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=True,
            comment="Soft delete timestamp (null = active)"
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
