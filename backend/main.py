"""
FastAPI application entry point for the Clerk identity sync service.

Clerk webhooks keep the local users, organizations and memberships tables in
sync with Clerk. Configuration is read once at startup into AppConfig and
shared through app.state.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from src.api.routes import debug
from src.api.routes import health
from src.api.routes import webhooks_clerk
from src.auth.clerk_verifier import ClerkSessionVerifier
from src.config.settings import AppConfig
from src.database.session import create_db_engine, create_session_factory
from src.platform.logging_config import configure_logging
from src.services.clerk_webhook_verifier import ClerkWebhookVerifier

logger = logging.getLogger(__name__)


def _init_state(app: FastAPI, config: AppConfig, engine: Optional[Engine]) -> None:
    app.state.config = config

    engine = engine or create_db_engine(config.database_url)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    app.state.clerk_webhook_verifier = (
        ClerkWebhookVerifier(config.clerk_webhook_signing_secret)
        if config.webhooks_configured
        else None
    )
    app.state.session_verifier = (
        ClerkSessionVerifier(config) if config.session_auth_configured else None
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    config: AppConfig = app.state.config
    logger.info(
        "Starting identity sync API",
        extra={
            "environment": config.environment,
            "webhooks_configured": config.webhooks_configured,
            "session_auth_configured": config.session_auth_configured,
        },
    )

    yield

    # Shutdown
    logger.info("Shutting down identity sync API")
    app.state.engine.dispose()


def create_app(config: Optional[AppConfig] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the ASGI application.

    Args:
        config: Explicit configuration (tests); read from the environment if omitted
        engine: Existing engine to use instead of one built from config.database_url
    """
    config = config or AppConfig.from_env()
    configure_logging(config.log_level)

    app = FastAPI(
        title="Identity Sync API",
        description="Clerk webhook ingestion and session-authenticated endpoints",
        version="1.0.0",
        lifespan=lifespan,
    )
    _init_state(app, config, engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include health route (bypasses authentication)
    app.include_router(health.router)

    # Include Clerk webhook routes (uses Svix signature verification, not JWT)
    app.include_router(webhooks_clerk.router)

    # Include debug routes (requires session with organization)
    app.include_router(debug.router)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
