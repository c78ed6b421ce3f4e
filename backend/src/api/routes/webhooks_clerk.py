"""
Clerk webhook endpoint for identity synchronization.

SECURITY: All webhooks MUST verify Svix signature before processing.
Clerk uses Svix for webhook delivery and signature verification.

Documentation: https://clerk.com/docs/webhooks

Responses:
- 400: missing body, missing Svix headers, invalid signature or payload
- 200: {"status": "duplicate" | "processed" | "failed", "eventId": ...}
- 500: retryable processing failure (Svix redelivers)
- 503: signing secret not configured
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from src.database.session import get_db_session
from src.services.clerk_webhook_errors import (
    MissingWebhookBody,
    WebhookError,
)
from src.services.clerk_webhook_service import (
    ClerkWebhookService,
    IngestionResult,
    RetryableWebhookError,
)
from src.services.clerk_webhook_verifier import ClerkWebhookVerifier, SvixHeaders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Svix."""

    status: str
    event_id: str = Field(..., alias="eventId")
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: IngestionResult) -> "WebhookResponse":
        return cls(status=result.status.value, event_id=result.event_id, error=result.error)


def get_webhook_verifier(request: Request) -> ClerkWebhookVerifier:
    """Return the verifier built at startup, or 503 when no signing secret is set."""
    verifier = getattr(request.app.state, "clerk_webhook_verifier", None)
    if verifier is None:
        logger.error("CLERK_WEBHOOK_SIGNING_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook handler not configured",
        )
    return verifier


@router.post(
    "/clerk",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
)
async def handle_clerk_webhook(
    request: Request,
    svix_id: Optional[str] = Header(None, alias="svix-id"),
    svix_timestamp: Optional[str] = Header(None, alias="svix-timestamp"),
    svix_signature: Optional[str] = Header(None, alias="svix-signature"),
    verifier: ClerkWebhookVerifier = Depends(get_webhook_verifier),
    db: Session = Depends(get_db_session),
):
    """
    Handle incoming Clerk webhooks.

    Security:
    - Verifies the Svix signature over the raw body
    - Does not require session authentication (webhooks are server-to-server)
    """
    body = await request.body()

    try:
        if not body:
            raise MissingWebhookBody()
        headers = SvixHeaders.from_values(svix_id, svix_timestamp, svix_signature)
        event = verifier.verify(body, headers)
    except WebhookError as e:
        logger.warning(
            "Rejected Clerk webhook",
            extra={"svix_id": svix_id, "error": e.message},
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    logger.info(
        "Received Clerk webhook",
        extra={"event_type": event.type, "svix_id": headers.svix_id},
    )

    service = ClerkWebhookService(db)
    try:
        result = service.ingest(headers.svix_id, event)
    except RetryableWebhookError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )
    except Exception:
        # Event log unavailable: nothing was recorded, let Svix redeliver
        logger.error(
            "Failed to record Clerk webhook",
            extra={"svix_id": headers.svix_id, "event_type": event.type},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    return WebhookResponse.from_result(result)


@router.get("/clerk/health")
async def clerk_webhook_health(request: Request):
    """
    Health check for Clerk webhook endpoint.

    Used to verify the webhook endpoint is accessible.
    Does not require authentication.
    """
    config = getattr(request.app.state, "config", None)

    return {
        "status": "healthy",
        "webhook_secret_configured": bool(config and config.webhooks_configured),
    }
