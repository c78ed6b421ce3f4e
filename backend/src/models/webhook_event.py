"""
WebhookEvent model for the Clerk webhook log.

Every delivery is recorded here, keyed by the Svix message ID. The unique
constraint on clerk_event_id is the only concurrency-control primitive of the
ingestion pipeline: a second insert with the same ID means redelivery.

Lifecycle:
- created on first sight of an event ID (processed_at = null, error = null)
- error cleared whenever the event is selected for reprocessing
- processed_at set exactly once, on first successful processing, never cleared
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime, Index

from src.db_base import Base
from src.models.base import JSONDocument, generate_uuid


class WebhookEvent(Base):
    """Durable record of a received Clerk webhook and its processing outcome."""

    __tablename__ = "webhook_events"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )

    clerk_event_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Svix message ID (svix-id header)"
    )

    event_type = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Clerk event type (e.g., user.created)"
    )

    payload = Column(
        JSONDocument,
        nullable=False,
        comment="Event data as delivered"
    )

    processed_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the event was first processed successfully (null = not yet)"
    )

    error = Column(
        Text,
        nullable=True,
        comment="Last processing failure message"
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="When the event was first received"
    )

    __table_args__ = (
        Index("idx_webhook_events_type_created", "event_type", "created_at"),
    )

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None

    def __repr__(self) -> str:
        return f"<WebhookEvent(id={self.id}, event_id={self.clerk_event_id}, type={self.event_type})>"
