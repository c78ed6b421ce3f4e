"""
Exceptions raised by the Clerk webhook ingestion pipeline.

Delivery errors (missing body, missing headers, bad signature) are raised
before anything is logged and map to HTTP 400. Processing errors are raised
while applying an event and go through the retry classifier.
"""

from typing import Optional


class WebhookError(Exception):
    """Base class for webhook ingestion errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingWebhookBody(WebhookError):
    """The request carried no body."""

    def __init__(self, message: str = "Missing request body"):
        super().__init__(message)


class MissingWebhookHeaders(WebhookError):
    """One or more of svix-id, svix-timestamp, svix-signature is absent."""

    def __init__(self, missing: Optional[list] = None):
        self.missing = missing or []
        super().__init__("Missing required webhook headers")


class InvalidWebhookSignature(WebhookError):
    """The payload failed Svix signature or timestamp verification."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


class InvalidWebhookPayload(WebhookError):
    """A verified payload is missing data required to apply it."""


class ReferencedEntityNotFound(WebhookError):
    """
    A membership references an organization or user not synced yet.

    Clerk may deliver organizationMembership events before the organization
    or user events they depend on. This error is classified as retryable so
    the delivery is retried once the prerequisite has landed.
    """

    def __init__(
        self,
        clerk_organization_id: str,
        clerk_user_id: str,
        organization_found: bool,
        user_found: bool,
    ):
        self.clerk_organization_id = clerk_organization_id
        self.clerk_user_id = clerk_user_id
        self.organization_found = organization_found
        self.user_found = user_found
        super().__init__(
            f"Referenced entity not found: org={str(organization_found).lower()}, "
            f"user={str(user_found).lower()} "
            f"(orgClerkId={clerk_organization_id}, userClerkId={clerk_user_id})"
        )

    @property
    def missing(self) -> list:
        """Names of the sides that could not be resolved."""
        return [
            name
            for name, found in (("organization", self.organization_found), ("user", self.user_found))
            if not found
        ]
