"""
Clerk webhook ingestion services.
"""

from src.services.clerk_webhook_handler import ClerkWebhookHandler
from src.services.clerk_webhook_service import ClerkWebhookService
from src.services.clerk_webhook_verifier import ClerkWebhookVerifier

__all__ = ["ClerkWebhookHandler", "ClerkWebhookService", "ClerkWebhookVerifier"]
