"""Repository layer for the webhook event log and Clerk-synced identities."""

from src.repositories.identity_repository import IdentityRepository
from src.repositories.webhook_event_repository import LogEventResult, WebhookEventRepository

__all__ = [
    "IdentityRepository",
    "LogEventResult",
    "WebhookEventRepository",
]
