"""
Root test configuration and fixtures.

Every test gets a fresh SQLite in-memory database. Repositories commit and
roll back on their own, so isolation comes from a new engine per test rather
than an outer transaction.

Shared fixtures:
- db_engine / db_session: empty schema with all identity tables
- webhook_secret / sign_webhook: Svix-compatible signing for request bodies
- app_config / client: FastAPI TestClient wired to the test database
- rsa_keys / make_session_token: RS256 session tokens for auth tests
- sample_*_data: Clerk payloads with millisecond timestamps
"""

import base64
import hashlib
import hmac
import json
import os
import time
import uuid
from typing import Any, Callable, Dict, Optional

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

import src.models  # noqa: F401
from src.config.settings import AppConfig
from src.database.session import create_db_engine, create_session_factory
from src.db_base import Base

# Set test environment
os.environ.setdefault("ENV", "test")

TEST_DATABASE_URL = "sqlite://"

# 2024-01-01T00:00:00Z and one hour later, in Unix milliseconds
CREATED_AT_MS = 1704067200000
UPDATED_AT_MS = 1704070800000


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def db_engine():
    """Fresh in-memory database with all tables created."""
    engine = create_db_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Webhook signing
# =============================================================================

@pytest.fixture
def webhook_secret() -> str:
    """Test webhook secret in Svix format."""
    return "whsec_" + base64.b64encode(b"test_secret_key_12345").decode()


def compute_svix_signature(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    """Svix v1 signature: base64(HMAC-SHA256(secret, "{id}.{timestamp}.{body}"))."""
    key = base64.b64decode(secret[len("whsec_"):])
    signed_content = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(key, signed_content, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


@pytest.fixture
def sign_webhook(webhook_secret) -> Callable[..., Dict[str, str]]:
    """
    Factory returning Svix headers for a body.

    Usage:
        headers = sign_webhook(body, msg_id="msg_1")
    """

    def _sign(body: bytes, msg_id: Optional[str] = None, timestamp: Optional[int] = None) -> Dict[str, str]:
        msg_id = msg_id or f"msg_{uuid.uuid4().hex}"
        ts = str(timestamp if timestamp is not None else int(time.time()))
        return {
            "svix-id": msg_id,
            "svix-timestamp": ts,
            "svix-signature": compute_svix_signature(webhook_secret, msg_id, ts, body),
        }

    return _sign


def make_event_body(event_type: str, data: Dict[str, Any]) -> bytes:
    """Serialize a Clerk event envelope the way Clerk sends it."""
    return json.dumps({
        "type": event_type,
        "object": "event",
        "data": data,
        "timestamp": UPDATED_AT_MS,
    }).encode()


# =============================================================================
# Session tokens
# =============================================================================

@pytest.fixture(scope="session")
def rsa_keys():
    """RSA keypair (PEM private, PEM public) for signing test session tokens."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def make_session_token(rsa_keys) -> Callable[..., str]:
    """Factory for RS256 Clerk-style session tokens signed with the test key."""
    private_pem, _ = rsa_keys

    def _make(
        sub: str = "user_clerk_123",
        sid: Optional[str] = "sess_123",
        org_id: Optional[str] = "org_clerk_123",
        org_slug: Optional[str] = "test-org",
        org_role: Optional[str] = "org:admin",
        expires_in: int = 300,
        **extra_claims,
    ) -> str:
        now = int(time.time())
        claims = {
            "sub": sub,
            "iss": "https://clerk.test.example",
            "iat": now,
            "nbf": now,
            "exp": now + expires_in,
        }
        if sid is not None:
            claims["sid"] = sid
        if org_id is not None:
            claims.update({"org_id": org_id, "org_slug": org_slug, "org_role": org_role})
        claims.update(extra_claims)
        return jwt.encode(claims, private_pem, algorithm="RS256")

    return _make


# =============================================================================
# Application
# =============================================================================

@pytest.fixture
def app_config(webhook_secret, rsa_keys) -> AppConfig:
    _, public_pem = rsa_keys
    return AppConfig(
        database_url=TEST_DATABASE_URL,
        clerk_webhook_signing_secret=webhook_secret,
        environment="test",
        clerk_jwt_key=public_pem,
    )


@pytest.fixture
def app(app_config, db_engine):
    from main import create_app

    return create_app(app_config, engine=db_engine)


@pytest.fixture
def client(app):
    return TestClient(app)


# =============================================================================
# Clerk payloads
# =============================================================================

@pytest.fixture
def sample_user_data() -> Dict[str, Any]:
    """Sample Clerk user data."""
    return {
        "id": "user_clerk_123",
        "object": "user",
        "email_addresses": [
            {"id": "email_2", "email_address": "secondary@example.com"},
            {"id": "email_1", "email_address": "test@example.com"},
        ],
        "primary_email_address_id": "email_1",
        "first_name": "John",
        "last_name": "Doe",
        "image_url": "https://example.com/avatar.jpg",
        "has_image": True,
        "username": "jdoe",
        "password_enabled": True,
        "two_factor_enabled": False,
        "banned": False,
        "locked": False,
        "external_id": None,
        "public_metadata": {"plan": "free"},
        "private_metadata": {},
        "unsafe_metadata": {},
        "last_sign_in_at": UPDATED_AT_MS,
        "last_active_at": None,
        "created_at": CREATED_AT_MS,
        "updated_at": UPDATED_AT_MS,
    }


@pytest.fixture
def sample_org_data() -> Dict[str, Any]:
    """Sample Clerk organization data."""
    return {
        "id": "org_clerk_123",
        "object": "organization",
        "name": "Test Organization",
        "slug": "test-org",
        "image_url": None,
        "has_image": False,
        "created_by": "user_clerk_123",
        "max_allowed_memberships": 5,
        "members_count": 1,
        "pending_invitations_count": 0,
        "admin_delete_enabled": True,
        "public_metadata": {"tier": "growth"},
        "private_metadata": {},
        "created_at": CREATED_AT_MS,
        "updated_at": UPDATED_AT_MS,
    }


@pytest.fixture
def sample_membership_data(sample_user_data, sample_org_data) -> Dict[str, Any]:
    """Sample Clerk membership data."""
    return {
        "id": "orgmem_123",
        "object": "organization_membership",
        "organization": {
            "id": sample_org_data["id"],
            "name": sample_org_data["name"],
            "slug": sample_org_data["slug"],
        },
        "public_user_data": {
            "user_id": sample_user_data["id"],
            "identifier": "test@example.com",
            "first_name": sample_user_data["first_name"],
            "last_name": sample_user_data["last_name"],
        },
        "role": "org:admin",
        "role_name": "Admin",
        "permissions": ["org:sys_memberships:manage"],
        "public_metadata": {},
        "private_metadata": {},
        "created_at": CREATED_AT_MS,
        "updated_at": UPDATED_AT_MS,
    }


@pytest.fixture
def event_body() -> Callable[[str, Dict[str, Any]], bytes]:
    return make_event_body
