"""
Application configuration for the identity sync service.

All settings are read from the environment exactly once, at process start,
into an immutable AppConfig. The instance is stored on app.state.config and
handed to the components that need it (webhook verifier, session verifier,
database engine). Nothing else in the codebase reads these variables.

Usage:
    from src.config.settings import AppConfig

    config = AppConfig.from_env()
    engine = create_db_engine(config.database_url)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""


def normalize_database_url(database_url: str) -> str:
    """
    Normalize a database URL for SQLAlchemy.

    Hosting providers hand out postgres:// URLs; SQLAlchemy requires postgresql://.
    """
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable process configuration.

    Attributes:
        database_url: SQLAlchemy URL of the relational store
        clerk_webhook_signing_secret: Svix signing secret (whsec_...) for Clerk webhooks
        environment: Deployment environment (development, test, production)
        clerk_secret_key: Clerk backend secret key, used to fetch JWKS from the Backend API
        clerk_jwt_key: PEM public key for networkless session token verification
        clerk_issuer_url: Expected token issuer (Clerk Frontend API URL)
        clerk_authorized_parties: Accepted values of the azp claim (empty = not checked)
        cors_origins: Origins allowed by the CORS middleware
        log_level: Root log level name
    """

    database_url: str
    clerk_webhook_signing_secret: Optional[str] = None
    environment: str = "development"
    clerk_secret_key: Optional[str] = None
    clerk_jwt_key: Optional[str] = None
    clerk_issuer_url: Optional[str] = None
    clerk_authorized_parties: Tuple[str, ...] = ()
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def webhooks_configured(self) -> bool:
        return bool(self.clerk_webhook_signing_secret)

    @property
    def session_auth_configured(self) -> bool:
        return bool(self.clerk_jwt_key or self.clerk_secret_key or self.clerk_issuer_url)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            AppConfig instance

        Raises:
            ConfigError: If DATABASE_URL is not set
        """
        env = os.environ if environ is None else environ

        database_url = env.get("DATABASE_URL")
        if not database_url:
            raise ConfigError("DATABASE_URL environment variable is not set")

        environment = env.get("ENV", "development")
        default_level = "INFO" if environment == "production" else "DEBUG"

        # Clerk keys are sometimes pasted with literal \n sequences
        jwt_key = env.get("CLERK_JWT_KEY")
        if jwt_key:
            jwt_key = jwt_key.replace("\\n", "\n")

        config = cls(
            database_url=normalize_database_url(database_url),
            clerk_webhook_signing_secret=env.get("CLERK_WEBHOOK_SIGNING_SECRET") or None,
            environment=environment,
            clerk_secret_key=env.get("CLERK_SECRET_KEY") or None,
            clerk_jwt_key=jwt_key or None,
            clerk_issuer_url=(env.get("CLERK_ISSUER_URL") or "").rstrip("/") or None,
            clerk_authorized_parties=_split_csv(env.get("CLERK_AUTHORIZED_PARTIES")),
            cors_origins=_split_csv(env.get("CORS_ORIGINS")) or DEFAULT_CORS_ORIGINS,
            log_level=env.get("LOG_LEVEL", default_level).upper(),
        )

        if not config.webhooks_configured:
            logger.warning("CLERK_WEBHOOK_SIGNING_SECRET not configured; webhook endpoint will return 503")
        if not config.session_auth_configured:
            logger.warning("Clerk session verification not configured; protected endpoints will return 401")

        return config
