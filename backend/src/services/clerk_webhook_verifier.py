"""
Clerk webhook signature verification.

SECURITY: All webhooks MUST verify the Svix signature before processing.
Clerk delivers webhooks through Svix; the signed content is
"{svix_id}.{svix_timestamp}.{raw_body}", so verification always runs on the
raw request bytes. Re-serializing parsed JSON changes whitespace and key
order and breaks the signature.

Documentation: https://clerk.com/docs/webhooks/sync-data
"""

import json
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from svix.webhooks import Webhook, WebhookVerificationError

from src.services.clerk_webhook_errors import (
    InvalidWebhookPayload,
    InvalidWebhookSignature,
    MissingWebhookHeaders,
)

logger = logging.getLogger(__name__)

SVIX_ID_HEADER = "svix-id"
SVIX_TIMESTAMP_HEADER = "svix-timestamp"
SVIX_SIGNATURE_HEADER = "svix-signature"


class SvixHeaders(BaseModel):
    """The three headers Svix attaches to every delivery."""

    svix_id: str
    svix_timestamp: str
    svix_signature: str

    @classmethod
    def from_values(
        cls,
        svix_id: Optional[str],
        svix_timestamp: Optional[str],
        svix_signature: Optional[str],
    ) -> "SvixHeaders":
        """
        Build headers, failing if any value is missing or empty.

        Raises:
            MissingWebhookHeaders: Listing the absent header names
        """
        values = {
            SVIX_ID_HEADER: svix_id,
            SVIX_TIMESTAMP_HEADER: svix_timestamp,
            SVIX_SIGNATURE_HEADER: svix_signature,
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise MissingWebhookHeaders(missing)
        return cls(svix_id=svix_id, svix_timestamp=svix_timestamp, svix_signature=svix_signature)

    def as_dict(self) -> Dict[str, str]:
        return {
            SVIX_ID_HEADER: self.svix_id,
            SVIX_TIMESTAMP_HEADER: self.svix_timestamp,
            SVIX_SIGNATURE_HEADER: self.svix_signature,
        }


class ClerkWebhookEvent(BaseModel):
    """Verified Clerk event envelope: {type, data, object, timestamp}."""

    type: str = Field(..., min_length=1, description="Event type, e.g. user.created")
    data: Dict[str, Any] = Field(default_factory=dict, description="Entity payload")
    object: Optional[str] = Field(None, description="Always 'event' for Clerk webhooks")
    timestamp: Optional[int] = Field(None, description="Event time (Unix ms)")

    model_config = ConfigDict(extra="allow")


class ClerkWebhookVerifier:
    """
    Verifies Clerk webhook deliveries with the Svix signing secret.

    The secret is injected from AppConfig at startup.

    Usage:
        verifier = ClerkWebhookVerifier(config.clerk_webhook_signing_secret)
        event = verifier.verify(raw_body, headers)
    """

    def __init__(self, signing_secret: str):
        if not signing_secret:
            raise ValueError("Clerk webhook signing secret is required")
        self._webhook = Webhook(signing_secret)

    def verify(self, raw_body: bytes, headers: SvixHeaders) -> ClerkWebhookEvent:
        """
        Verify the signature and decode the event.

        Args:
            raw_body: Request body exactly as received
            headers: Svix headers of the delivery

        Returns:
            Decoded ClerkWebhookEvent

        Raises:
            InvalidWebhookSignature: Signature mismatch or timestamp outside tolerance
            InvalidWebhookPayload: Body is not UTF-8, or the signed body is not a Clerk event envelope
        """
        try:
            body = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Webhook body is not UTF-8", extra={"svix_id": headers.svix_id})
            raise InvalidWebhookPayload("Webhook payload is not valid UTF-8")

        # Signature check only: svix 2.x returns None from verify
        try:
            self._webhook.verify(body, headers.as_dict())
        except WebhookVerificationError as e:
            logger.warning(
                "Webhook signature verification failed",
                extra={"error": str(e), "svix_id": headers.svix_id},
            )
            raise InvalidWebhookSignature()

        try:
            payload = json.loads(body)
        except ValueError as e:
            logger.warning("Verified webhook body is not JSON", extra={"error": str(e)})
            raise InvalidWebhookPayload("Webhook payload is not valid JSON")

        try:
            return ClerkWebhookEvent.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                "Verified webhook is not a Clerk event",
                extra={"error": str(e), "svix_id": headers.svix_id},
            )
            raise InvalidWebhookPayload("Webhook payload is not a valid Clerk event")
