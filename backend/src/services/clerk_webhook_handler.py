"""
Clerk Webhook Handler: dispatches verified events to entity handlers.

Handles the following event types:
- user.created, user.updated, user.deleted
- organization.created, organization.updated, organization.deleted
- organizationMembership.created, organizationMembership.updated, organizationMembership.deleted
- organizationInvitation.*, organizationDomain.*, role.*, permission.* (acknowledged, not persisted)

Created/updated events are idempotent upserts keyed on clerk_id; deleted
events set deleted_at. Event types Clerk adds in the future are logged and
acknowledged, never treated as errors.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from src.models.organization import Organization
from src.models.organization_membership import OrganizationMembership
from src.models.user import User
from src.repositories.identity_repository import IdentityRepository
from src.services.clerk_payload_mappers import (
    map_membership_payload,
    map_organization_payload,
    map_user_payload,
)
from src.services.clerk_webhook_errors import InvalidWebhookPayload, ReferencedEntityNotFound
from src.services.clerk_webhook_verifier import ClerkWebhookEvent

logger = logging.getLogger(__name__)


class ClerkEntityKind(str, Enum):
    """Entity an event type refers to (the part before the dot)."""
    USER = "user"
    ORGANIZATION = "organization"
    MEMBERSHIP = "organizationMembership"
    INVITATION = "organizationInvitation"
    DOMAIN = "organizationDomain"
    ROLE = "role"
    PERMISSION = "permission"


class ClerkEventType(str, Enum):
    """Clerk webhook event types this service recognizes."""
    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"

    ORGANIZATION_CREATED = "organization.created"
    ORGANIZATION_UPDATED = "organization.updated"
    ORGANIZATION_DELETED = "organization.deleted"

    MEMBERSHIP_CREATED = "organizationMembership.created"
    MEMBERSHIP_UPDATED = "organizationMembership.updated"
    MEMBERSHIP_DELETED = "organizationMembership.deleted"

    INVITATION_ACCEPTED = "organizationInvitation.accepted"
    INVITATION_CREATED = "organizationInvitation.created"
    INVITATION_REVOKED = "organizationInvitation.revoked"

    DOMAIN_CREATED = "organizationDomain.created"
    DOMAIN_UPDATED = "organizationDomain.updated"
    DOMAIN_DELETED = "organizationDomain.deleted"

    ROLE_CREATED = "role.created"
    ROLE_UPDATED = "role.updated"
    ROLE_DELETED = "role.deleted"

    PERMISSION_CREATED = "permission.created"
    PERMISSION_UPDATED = "permission.updated"
    PERMISSION_DELETED = "permission.deleted"

    @property
    def entity_kind(self) -> ClerkEntityKind:
        return ClerkEntityKind(self.value.split(".", 1)[0])

    @property
    def is_deletion(self) -> bool:
        return self.value.endswith(".deleted")


EventHandler = Callable[[ClerkEventType, Dict[str, Any]], Dict[str, Any]]


class ClerkWebhookHandler:
    """
    Routes verified Clerk events to entity handlers and owns their transaction.

    Every handler runs inside one transaction that is committed on success
    and rolled back on failure.
    """

    def __init__(self, session: Session):
        """
        Initialize handler with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session
        self.identities = IdentityRepository(session)
        self._handlers: Dict[ClerkEntityKind, EventHandler] = {
            ClerkEntityKind.USER: self.handle_user_event,
            ClerkEntityKind.ORGANIZATION: self.handle_organization_event,
            ClerkEntityKind.MEMBERSHIP: self.handle_membership_event,
            ClerkEntityKind.INVITATION: self.handle_invitation_event,
            ClerkEntityKind.DOMAIN: self.handle_domain_event,
            ClerkEntityKind.ROLE: self.handle_role_event,
            ClerkEntityKind.PERMISSION: self.handle_permission_event,
        }

    def process_event(self, event: ClerkWebhookEvent) -> Dict[str, Any]:
        """
        Dispatch an event by type.

        Args:
            event: Verified Clerk event

        Returns:
            Dict describing what was done ("action" key)

        Raises:
            ReferencedEntityNotFound: Membership references an unsynced entity
            InvalidWebhookPayload: Payload lacks a required field
            StorageError: Database write failed
        """
        try:
            event_type = ClerkEventType(event.type)
        except ValueError:
            return self.handle_unhandled_event(event)

        handler = self._handlers.get(event_type.entity_kind)
        if handler is None:
            return self.handle_unhandled_event(event)

        try:
            result = handler(event_type, event.data)
            self.session.commit()
            return result
        except Exception as e:
            self.session.rollback()
            logger.error(
                f"Error handling {event_type.value}",
                extra={"error": str(e), "event_type": event_type.value},
            )
            raise

    # =========================================================================
    # Synced entities
    # =========================================================================

    def handle_user_event(self, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        """Upsert on user.created / user.updated, soft delete on user.deleted."""
        if event_type.is_deletion:
            return self._soft_delete(User, data, "user")

        values = map_user_payload(data)
        logger.info(
            "Upserting user",
            extra={"clerk_id": values["clerk_id"], "event_type": event_type.value},
        )
        self.identities.upsert(User, values)
        return {"action": "upserted", "clerk_id": values["clerk_id"]}

    def handle_organization_event(self, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        """Upsert on organization.created / updated, soft delete on organization.deleted."""
        if event_type.is_deletion:
            return self._soft_delete(Organization, data, "organization")

        values = map_organization_payload(data)
        logger.info(
            "Upserting organization",
            extra={"clerk_id": values["clerk_id"], "event_type": event_type.value},
        )
        self.identities.upsert(Organization, values)
        return {"action": "upserted", "clerk_id": values["clerk_id"]}

    def handle_membership_event(self, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Upsert or soft delete an organization membership.

        Before upserting, the Clerk organization and user IDs are resolved to
        internal surrogate keys. If either row is missing the event arrived
        ahead of its prerequisites; ReferencedEntityNotFound makes Svix retry.
        """
        if event_type.is_deletion:
            return self._soft_delete(OrganizationMembership, data, "organization membership")

        mapping = map_membership_payload(data)
        clerk_id = mapping.values["clerk_id"]

        logger.info(
            "Resolving FK references for membership",
            extra={
                "clerk_id": clerk_id,
                "clerk_organization_id": mapping.clerk_organization_id,
                "clerk_user_id": mapping.clerk_user_id,
            },
        )

        organization_id = self.identities.find_id_by_clerk_id(Organization, mapping.clerk_organization_id)
        user_id = self.identities.find_id_by_clerk_id(User, mapping.clerk_user_id)

        if organization_id is None or user_id is None:
            raise ReferencedEntityNotFound(
                clerk_organization_id=mapping.clerk_organization_id,
                clerk_user_id=mapping.clerk_user_id,
                organization_found=organization_id is not None,
                user_found=user_id is not None,
            )

        values = {**mapping.values, "organization_id": organization_id, "user_id": user_id}

        logger.info(
            "Upserting organization membership",
            extra={
                "clerk_id": clerk_id,
                "organization_id": organization_id,
                "user_id": user_id,
                "event_type": event_type.value,
            },
        )
        self.identities.upsert(OrganizationMembership, values)
        return {"action": "upserted", "clerk_id": clerk_id}

    # =========================================================================
    # Acknowledged, not persisted
    # =========================================================================

    def handle_invitation_event(self, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._acknowledge("Invitation", event_type, data)

    def handle_domain_event(self, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._acknowledge("Domain", event_type, data)

    def handle_role_event(self, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._acknowledge("Role", event_type, data)

    def handle_permission_event(self, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._acknowledge("Permission", event_type, data)

    def handle_unhandled_event(self, event: ClerkWebhookEvent) -> Dict[str, Any]:
        """Default arm: unknown event types are logged and acknowledged."""
        logger.warning("Unhandled webhook event type", extra={"event_type": event.type})
        return {"action": "ignored", "reason": f"Unsupported event type: {event.type}"}

    # =========================================================================
    # Helpers
    # =========================================================================

    def _soft_delete(self, model, data: Dict[str, Any], entity: str) -> Dict[str, Any]:
        clerk_id = data.get("id")
        if not clerk_id:
            raise InvalidWebhookPayload(f"Missing {entity} id in payload")

        logger.info(f"Soft-deleting {entity}", extra={"clerk_id": clerk_id})
        matched = self.identities.soft_delete(model, clerk_id)
        return {"action": "soft_deleted", "clerk_id": clerk_id, "matched": matched}

    def _acknowledge(self, entity: str, event_type: ClerkEventType, data: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(
            f"{entity} event handler not yet implemented",
            extra={"event_type": event_type.value, "clerk_id": data.get("id")},
        )
        return {"action": "acknowledged", "clerk_id": data.get("id")}
