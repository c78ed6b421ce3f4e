"""
Tests for the identity upsert engine.

Tests cover:
- Insert on first sight, overwrite on conflict, surrogate ID stability
- Soft delete semantics
- Clerk ID resolution
- Typed storage errors
"""

from datetime import datetime, timezone

import pytest

from src.database.errors import ForeignKeyViolation, StorageError, UniqueViolation
from src.models.organization import Organization
from src.models.organization_membership import OrganizationMembership
from src.models.user import User
from src.repositories.identity_repository import IdentityRepository
from src.services.clerk_payload_mappers import map_organization_payload, map_user_payload


@pytest.fixture
def identities(db_session):
    return IdentityRepository(db_session)


def _user(db_session, clerk_id="user_clerk_123"):
    db_session.expire_all()
    return db_session.query(User).filter_by(clerk_id=clerk_id).one()


class TestUpsert:
    """Tests for upsert keyed on clerk_id."""

    def test_inserts_new_row(self, identities, db_session, sample_user_data):
        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.commit()

        user = _user(db_session)
        assert user.id
        assert user.email == "test@example.com"
        assert user.deleted_at is None

    def test_conflict_overwrites_mapped_columns(self, identities, db_session, sample_user_data):
        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.commit()

        sample_user_data["first_name"] = "Jane"
        sample_user_data["public_metadata"] = {"plan": "pro"}
        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.commit()

        user = _user(db_session)
        assert user.first_name == "Jane"
        assert user.public_metadata == {"plan": "pro"}
        assert db_session.query(User).count() == 1

    def test_surrogate_id_is_stable(self, identities, db_session, sample_user_data):
        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.commit()
        original_id = _user(db_session).id

        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.commit()

        assert _user(db_session).id == original_id

    def test_replay_is_idempotent(self, identities, db_session, sample_org_data):
        values = map_organization_payload(sample_org_data)

        for _ in range(3):
            identities.upsert(Organization, values)
            db_session.commit()

        assert db_session.query(Organization).count() == 1

    def test_unique_slug_collision_raises_unique_violation(self, identities, db_session, sample_org_data):
        identities.upsert(Organization, map_organization_payload(sample_org_data))
        db_session.commit()

        sample_org_data["id"] = "org_other"
        with pytest.raises(UniqueViolation):
            identities.upsert(Organization, map_organization_payload(sample_org_data))
        db_session.rollback()

    def test_missing_reference_raises_foreign_key_violation(self, identities, db_session):
        now = datetime.now(timezone.utc)

        with pytest.raises(ForeignKeyViolation) as exc_info:
            identities.upsert(OrganizationMembership, {
                "clerk_id": "orgmem_1",
                "organization_id": "missing-org",
                "user_id": "missing-user",
                "role": "org:member",
                "created_at": now,
                "updated_at": now,
            })
        db_session.rollback()

        assert "foreign key" in str(exc_info.value).lower()

    def test_does_not_commit(self, identities, db_session, sample_user_data):
        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.rollback()

        assert db_session.query(User).count() == 0


class TestSoftDelete:
    """Tests for soft_delete."""

    def test_sets_deleted_at_and_keeps_row(self, identities, db_session, sample_user_data):
        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.commit()

        assert identities.soft_delete(User, "user_clerk_123") == 1
        db_session.commit()

        user = _user(db_session)
        assert user.is_deleted
        assert user.email == "test@example.com"

    def test_unknown_clerk_id_is_noop(self, identities, db_session):
        assert identities.soft_delete(User, "user_unknown") == 0
        db_session.commit()
        assert db_session.query(User).count() == 0

    def test_upsert_after_delete_keeps_row_deleted(self, identities, db_session, sample_user_data):
        identities.upsert(User, map_user_payload(sample_user_data))
        identities.soft_delete(User, "user_clerk_123")
        db_session.commit()

        identities.upsert(User, map_user_payload(sample_user_data))
        db_session.commit()

        assert _user(db_session).is_deleted


class TestFindIdByClerkId:
    """Tests for find_id_by_clerk_id."""

    def test_resolves_surrogate_id(self, identities, db_session, sample_org_data):
        identities.upsert(Organization, map_organization_payload(sample_org_data))
        db_session.commit()

        org = db_session.query(Organization).one()
        assert identities.find_id_by_clerk_id(Organization, "org_clerk_123") == org.id

    def test_unknown_returns_none(self, identities):
        assert identities.find_id_by_clerk_id(Organization, "org_unknown") is None

    def test_soft_deleted_rows_still_resolve(self, identities, db_session, sample_org_data):
        identities.upsert(Organization, map_organization_payload(sample_org_data))
        identities.soft_delete(Organization, "org_clerk_123")
        db_session.commit()

        assert identities.find_id_by_clerk_id(Organization, "org_clerk_123") is not None


class TestUnsupportedDialect:
    """Upsert requires INSERT ... ON CONFLICT."""

    def test_raises_storage_error(self, identities, sample_user_data):
        from unittest.mock import patch

        with patch.object(identities.db, "get_bind") as get_bind:
            get_bind.return_value.dialect.name = "mysql"
            with pytest.raises(StorageError):
                identities.upsert(User, map_user_payload(sample_user_data))
