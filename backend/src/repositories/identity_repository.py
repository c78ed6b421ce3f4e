"""
Identity repository: upsert engine for entities synced from Clerk.

The webhook handler is the only caller and therefore the only writer of the
users, organizations and organization_memberships tables.

- upsert: one INSERT ... ON CONFLICT (clerk_id) DO UPDATE statement, so two
  concurrent deliveries for the same entity cannot race between a read and
  a write
- soft_delete: sets deleted_at on the matching row, never removes it
- find_id_by_clerk_id: resolves a Clerk ID to the internal surrogate key

Writes are not committed here; the caller owns the transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from src.database.errors import StorageError, translate_integrity_errors
from src.db_base import Base

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT support
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class IdentityRepository:
    """Point writes and lookups for Clerk-synced entities."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def upsert(self, model: Type[Base], values: Dict[str, Any], key: str = "clerk_id") -> None:
        """
        Insert a row, or overwrite every mapped column of the existing row.

        Args:
            model: Mapped class to write
            values: Column values produced by a payload mapper
            key: Unique column used as the conflict target (never overwritten)

        Raises:
            StorageError: If the dialect has no upsert or a constraint fails
        """
        dialect = self.db.get_bind().dialect.name
        dialect_insert = _UPSERT_INSERTS.get(dialect)
        if dialect_insert is None:
            raise StorageError(f"Upsert is not supported on dialect '{dialect}'")

        stmt = dialect_insert(model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[key],
            set_={column: stmt.excluded[column] for column in values if column != key},
        )

        with translate_integrity_errors():
            self.db.execute(stmt)

    def soft_delete(
        self,
        model: Type[Base],
        clerk_id: str,
        deleted_at: Optional[datetime] = None,
    ) -> int:
        """
        Mark the row with the given Clerk ID as deleted.

        An unknown Clerk ID matches zero rows and is not an error.

        Returns:
            Number of rows matched (0 or 1)
        """
        result = self.db.execute(
            update(model)
            .where(model.clerk_id == clerk_id)
            .values(deleted_at=deleted_at or datetime.now(timezone.utc))
        )
        return result.rowcount

    def find_id_by_clerk_id(self, model: Type[Base], clerk_id: str) -> Optional[str]:
        """Return the surrogate ID for a Clerk ID, or None if not synced yet."""
        return self.db.execute(
            select(model.id).where(model.clerk_id == clerk_id)
        ).scalar_one_or_none()
