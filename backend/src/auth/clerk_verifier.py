"""
Clerk session token verifier.

This module handles:
- Resolving the verification key (PEM public key or JWKS)
- JWT signature verification (RS256 only)
- Token expiration and authorized-party validation
- Mapping claims to a SessionPrincipal

Key sources, in order of preference:
1. CLERK_JWT_KEY: PEM public key, verification needs no network access
2. CLERK_ISSUER_URL: frontend JWKS at {issuer}/.well-known/jwks.json
3. CLERK_SECRET_KEY: Backend API JWKS, authenticated with the secret key

Documentation: https://clerk.com/docs/backend-requests/handling/manual-jwt
"""

import logging
from threading import Lock
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient, PyJWKClientError
from jwt.exceptions import (
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidTokenError,
    MissingRequiredClaimError,
)
from pydantic import BaseModel, ConfigDict

from src.config.settings import AppConfig

logger = logging.getLogger(__name__)

CLERK_BACKEND_JWKS_URL = "https://api.clerk.com/v1/jwks"


class ClerkVerificationError(Exception):
    """Exception raised when Clerk JWT verification fails."""

    def __init__(self, message: str, error_code: str = "verification_failed"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class SessionPrincipal(BaseModel):
    """
    Identity carried by a verified Clerk session token.

    Organization fields are None when the user has no active organization.
    """

    user_id: str
    session_id: str
    org_id: Optional[str] = None
    org_slug: Optional[str] = None
    org_role: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_organization(self) -> bool:
        return bool(self.org_id)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "SessionPrincipal":
        return cls(
            user_id=claims["sub"],
            session_id=claims["sid"],
            org_id=claims.get("org_id"),
            org_slug=claims.get("org_slug"),
            org_role=claims.get("org_role"),
        )


class ClerkSessionVerifier:
    """
    Verifies Clerk session tokens.

    Clerk session token payload:
        - sub: Clerk user ID (e.g., "user_2abc123")
        - sid: Session ID
        - iss: Clerk frontend API URL
        - exp, iat, nbf: Validity window
        - azp: Origin that requested the token
        - org_id, org_slug, org_role: Active organization (optional)

    Usage:
        verifier = ClerkSessionVerifier(config)
        principal = verifier.verify(token)
    """

    # Clock skew tolerance in seconds (for exp/iat/nbf validation)
    CLOCK_SKEW_SECONDS = 60

    # JWKS cache duration in seconds
    JWKS_CACHE_DURATION = 3600

    REQUIRED_CLAIMS = ["sub", "sid", "exp", "iat"]

    def __init__(self, config: AppConfig):
        self._jwt_key = config.clerk_jwt_key
        self._issuer = config.clerk_issuer_url
        self._secret_key = config.clerk_secret_key
        self._authorized_parties = set(config.clerk_authorized_parties)

        self._jwks_client: Optional[PyJWKClient] = None
        self._jwks_client_lock = Lock()

        if self._jwt_key:
            self._jwks_url = None
        elif self._issuer:
            self._jwks_url = f"{self._issuer}/.well-known/jwks.json"
        elif self._secret_key:
            self._jwks_url = CLERK_BACKEND_JWKS_URL
        else:
            raise ClerkVerificationError(
                "One of CLERK_JWT_KEY, CLERK_ISSUER_URL or CLERK_SECRET_KEY is required",
                error_code="config_error",
            )

        logger.info(
            "Initialized ClerkSessionVerifier",
            extra={
                "issuer": self._issuer,
                "jwks_url": self._jwks_url,
                "networkless": self._jwks_url is None,
            },
        )

    def _get_jwks_client(self) -> PyJWKClient:
        with self._jwks_client_lock:
            if self._jwks_client is None:
                headers = {}
                if self._jwks_url == CLERK_BACKEND_JWKS_URL:
                    headers["Authorization"] = f"Bearer {self._secret_key}"
                self._jwks_client = PyJWKClient(
                    self._jwks_url,
                    cache_keys=True,
                    lifespan=self.JWKS_CACHE_DURATION,
                    headers=headers,
                )
            return self._jwks_client

    def _get_signing_key(self, token: str):
        if self._jwt_key:
            return self._jwt_key
        return self._get_jwks_client().get_signing_key_from_jwt(token).key

    def verify(self, token: str) -> SessionPrincipal:
        """
        Verify a session token and return its principal.

        Args:
            token: Session JWT, with or without "Bearer " prefix

        Returns:
            SessionPrincipal

        Raises:
            ClerkVerificationError: If verification fails
        """
        if not token:
            raise ClerkVerificationError("Token is required", error_code="missing_token")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            claims = jwt.decode(
                token,
                self._get_signing_key(token),
                algorithms=["RS256"],
                issuer=self._issuer,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_nbf": True,
                    "verify_aud": False,
                    "require": self.REQUIRED_CLAIMS,
                },
                leeway=self.CLOCK_SKEW_SECONDS,
            )

        except ExpiredSignatureError:
            logger.warning("Token has expired")
            raise ClerkVerificationError("Token has expired", error_code="token_expired")

        except InvalidIssuerError:
            logger.warning("Invalid token issuer")
            raise ClerkVerificationError("Invalid token issuer", error_code="invalid_issuer")

        except MissingRequiredClaimError as e:
            logger.warning(f"Token missing claim: {e.claim}")
            raise ClerkVerificationError(
                f"Missing required claim: {e.claim}",
                error_code="missing_claims",
            )

        except PyJWKClientError as e:
            logger.error(f"JWKS client error: {e}")
            raise ClerkVerificationError(
                f"Failed to fetch signing key: {e}",
                error_code="jwks_error",
            )

        except InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise ClerkVerificationError(f"Invalid token: {e}", error_code="invalid_token")

        azp = claims.get("azp")
        if self._authorized_parties and azp not in self._authorized_parties:
            logger.warning("Token authorized party not allowed", extra={"azp": azp})
            raise ClerkVerificationError(
                "Invalid authorized party",
                error_code="invalid_authorized_party",
            )

        logger.debug(
            "Token verified successfully",
            extra={"sub": claims.get("sub"), "sid": claims.get("sid")},
        )

        return SessionPrincipal.from_claims(claims)
