"""
Webhook event log repository.

Sole owner of delivery/processing state for Clerk webhooks. Deduplication
relies on the unique constraint on webhook_events.clerk_event_id: the first
delivery inserts the row, every redelivery collides with it.

Each method commits its own write so the log survives a later rollback of
the entity writes made while processing the event.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from src.database.errors import UniqueViolation, translate_integrity_errors
from src.models.webhook_event import WebhookEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogEventResult:
    """
    Outcome of logging a delivery.

    Attributes:
        is_new: True when the caller should process the event
        reprocessing: True when an earlier, unfinished delivery is being retried
    """

    is_new: bool
    reprocessing: bool = False


class WebhookEventRepository:
    """
    Repository for the webhook event log.

    State machine per event ID:
        unlogged -> logged (processed_at null) -> processed | failed
        failed -> logged again on redelivery (error cleared)
        processed is terminal
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def log_event(
        self,
        event_id: str,
        event_type: str,
        payload: Dict[str, Any],
    ) -> LogEventResult:
        """
        Record a delivery and decide whether it must be processed.

        - New event ID: row inserted, is_new=True.
        - Known ID, already processed: is_new=False (true duplicate).
        - Known ID, never processed: error cleared, is_new=True (retry).

        Args:
            event_id: Svix message ID
            event_type: Clerk event type
            payload: Event data

        Returns:
            LogEventResult

        Raises:
            Any storage error other than a unique violation, unchanged
        """
        try:
            self._insert(event_id, event_type, payload)
            return LogEventResult(is_new=True)
        except UniqueViolation:
            return self._claim_for_reprocessing(event_id)

    def mark_processed(self, event_id: str) -> bool:
        """
        Mark an event as successfully processed.

        processed_at is only set while it is still null, so the first
        successful processing time is never overwritten.

        Returns:
            True if the row transitioned to processed
        """
        result = self._execute_and_commit(
            update(WebhookEvent)
            .where(
                WebhookEvent.clerk_event_id == event_id,
                WebhookEvent.processed_at.is_(None),
            )
            .values(processed_at=datetime.now(timezone.utc), error=None)
        )
        return result.rowcount > 0

    def mark_failed(self, event_id: str, error_message: str) -> None:
        """Store the latest processing failure for operator visibility."""
        self._execute_and_commit(
            update(WebhookEvent)
            .where(WebhookEvent.clerk_event_id == event_id)
            .values(error=error_message)
        )

    def get(self, event_id: str) -> Optional[WebhookEvent]:
        """Fetch the log row for an event ID, if any."""
        return self.db.execute(
            select(WebhookEvent).where(WebhookEvent.clerk_event_id == event_id)
        ).scalar_one_or_none()

    # =========================================================================
    # Internals
    # =========================================================================

    def _insert(self, event_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        stmt = insert(WebhookEvent).values(
            clerk_event_id=event_id,
            event_type=event_type,
            payload=payload,
        )
        try:
            with translate_integrity_errors():
                self.db.execute(stmt)
                self.db.commit()
        except UniqueViolation:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to log webhook event",
                extra={"clerk_event_id": event_id, "event_type": event_type, "error": str(e)},
            )
            raise

    def _claim_for_reprocessing(self, event_id: str) -> LogEventResult:
        """
        Reopen a logged but unprocessed event.

        A single conditional UPDATE both checks processed_at and clears the
        previous error, so a concurrent mark_processed cannot slip in between
        a read and the write.
        """
        result = self._execute_and_commit(
            update(WebhookEvent)
            .where(
                WebhookEvent.clerk_event_id == event_id,
                WebhookEvent.processed_at.is_(None),
            )
            .values(error=None)
        )

        if result.rowcount == 0:
            return LogEventResult(is_new=False)

        logger.info("Reprocessing previously failed event", extra={"clerk_event_id": event_id})
        return LogEventResult(is_new=True, reprocessing=True)

    def _execute_and_commit(self, stmt):
        try:
            result = self.db.execute(stmt)
            self.db.commit()
            return result
        except Exception:
            self.db.rollback()
            raise
