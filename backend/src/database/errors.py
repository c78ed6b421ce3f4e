"""
Typed storage errors.

SQLAlchemy wraps driver exceptions (psycopg2, sqlite3) in IntegrityError /
OperationalError and keeps the driver error on `.orig`. This module inspects
that once, at the storage boundary, and raises a distinct exception type so
services never have to unwrap nested causes themselves.

Usage:
    with translate_integrity_errors():
        session.execute(insert_stmt)
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError

# PostgreSQL SQLSTATE codes
PG_UNIQUE_VIOLATION = "23505"
PG_FOREIGN_KEY_VIOLATION = "23503"


class StorageError(Exception):
    """Base class for errors surfaced by the storage layer."""

    def __init__(self, message: str, constraint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.constraint = constraint


class UniqueViolation(StorageError):
    """An insert collided with a unique constraint."""


class ForeignKeyViolation(StorageError):
    """A write referenced a row that does not exist."""


def _sqlstate(orig: object) -> Optional[str]:
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _constraint_name(orig: object) -> Optional[str]:
    diag = getattr(orig, "diag", None)
    return getattr(diag, "constraint_name", None) if diag is not None else None


def classify_integrity_error(error: IntegrityError) -> StorageError:
    """
    Map an IntegrityError to the matching StorageError subclass.

    Args:
        error: IntegrityError raised by SQLAlchemy

    Returns:
        UniqueViolation, ForeignKeyViolation, or a plain StorageError
    """
    orig = error.orig
    message = str(orig) if orig is not None else str(error)
    code = _sqlstate(orig)
    constraint = _constraint_name(orig)

    if code == PG_UNIQUE_VIOLATION or "UNIQUE constraint failed" in message:
        return UniqueViolation(message, constraint)
    if code == PG_FOREIGN_KEY_VIOLATION or "FOREIGN KEY constraint failed" in message:
        return ForeignKeyViolation(message, constraint)
    return StorageError(message, constraint)


@contextmanager
def translate_integrity_errors() -> Iterator[None]:
    """Re-raise IntegrityError from the wrapped block as a typed StorageError."""
    try:
        yield
    except IntegrityError as e:
        raise classify_integrity_error(e) from e
