"""
Clerk webhook ingestion: deduplicate, process, record the outcome.

The route hands over an event that already passed signature verification.
This service owns everything that happens after that:

1. Log the delivery (webhook_events). A known, processed event ID is a
   duplicate and is not processed again.
2. Dispatch the event to ClerkWebhookHandler.
3. Mark the event processed, or store the failure message.
4. Classify failures: retryable ones raise RetryableWebhookError (HTTP 5xx,
   Svix redelivers), terminal ones are returned as status "failed" (HTTP 200).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from src.repositories.webhook_event_repository import WebhookEventRepository
from src.services.clerk_webhook_errors import WebhookError
from src.services.clerk_webhook_handler import ClerkWebhookHandler
from src.services.clerk_webhook_verifier import ClerkWebhookEvent
from src.services.webhook_retry import is_retryable_error

logger = logging.getLogger(__name__)


class IngestionStatus(str, Enum):
    DUPLICATE = "duplicate"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass(frozen=True)
class IngestionResult:
    """
    Outcome of a delivery that is acknowledged with HTTP 200.

    error is the provider-facing summary; the full message is stored on the
    webhook_events row.
    """

    status: IngestionStatus
    event_id: str
    error: Optional[str] = None


class RetryableWebhookError(WebhookError):
    """Processing failed in a way a later redelivery can fix."""

    def __init__(self, event_id: str, message: str):
        super().__init__(message)
        self.event_id = event_id


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _public_error_message(error: BaseException) -> str:
    """
    Error text safe to return to the webhook provider.

    Pipeline errors carry messages written for the response. Anything else
    (driver and ORM errors embed SQL and bound parameters) is reduced to its
    type; the full text stays in webhook_events.error and the logs.
    """
    if isinstance(error, WebhookError):
        return error.message
    return f"Webhook processing failed ({type(error).__name__})"


class ClerkWebhookService:
    """
    Runs one verified delivery through the event log and the dispatcher.

    Usage:
        service = ClerkWebhookService(session)
        result = service.ingest(svix_id, event)
    """

    def __init__(
        self,
        session: Session,
        event_log: Optional[WebhookEventRepository] = None,
        handler: Optional[ClerkWebhookHandler] = None,
    ):
        self.event_log = event_log or WebhookEventRepository(session)
        self.handler = handler or ClerkWebhookHandler(session)

    def ingest(self, event_id: str, event: ClerkWebhookEvent) -> IngestionResult:
        """
        Process a verified event at most once to completion.

        Args:
            event_id: Svix message ID (svix-id header), the dedup key
            event: Verified Clerk event

        Returns:
            IngestionResult with status duplicate, processed or failed

        Raises:
            RetryableWebhookError: Processing failed transiently
            Exception: Logging the delivery failed (storage unavailable)
        """
        log_result = self.event_log.log_event(event_id, event.type, event.data)

        if not log_result.is_new:
            logger.info(
                "Duplicate webhook event skipped",
                extra={"clerk_event_id": event_id, "event_type": event.type},
            )
            return IngestionResult(status=IngestionStatus.DUPLICATE, event_id=event_id)

        try:
            self.handler.process_event(event)
            # A failure here is handled like a processing failure: the event
            # stays unprocessed and a redelivery reprocesses it idempotently.
            self.event_log.mark_processed(event_id)
        except Exception as e:
            return self._handle_failure(event_id, event.type, e)

        logger.info(
            "Webhook event processed",
            extra={"clerk_event_id": event_id, "event_type": event.type},
        )
        return IngestionResult(status=IngestionStatus.PROCESSED, event_id=event_id)

    def _handle_failure(self, event_id: str, event_type: str, error: Exception) -> IngestionResult:
        message = _error_message(error)

        try:
            self.event_log.mark_failed(event_id, message)
        except Exception as e:
            # Keep classifying the original error
            logger.error(
                "Failed to record webhook failure",
                extra={"clerk_event_id": event_id, "error": str(e)},
            )

        if is_retryable_error(error):
            logger.error(
                "Retryable error processing webhook, provider will redeliver",
                extra={"clerk_event_id": event_id, "event_type": event_type, "error": message},
            )
            raise RetryableWebhookError(event_id, _public_error_message(error)) from error

        logger.error(
            "Non-retryable error processing webhook",
            extra={"clerk_event_id": event_id, "event_type": event_type, "error": message},
            exc_info=True,
        )
        return IngestionResult(
            status=IngestionStatus.FAILED,
            event_id=event_id,
            error=_public_error_message(error),
        )
