"""
Pure mappers from Clerk webhook payloads to storage values.

Each mapper turns the `data` object of a Clerk event into a dict keyed by
model column name, ready for IdentityRepository.upsert. Mappers never touch
the database: the membership mapper returns the Clerk organization and user
IDs separately so the caller can resolve them to surrogate keys.

Clerk timestamps are Unix milliseconds; they are converted to timezone-aware
UTC datetimes.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.services.clerk_webhook_errors import InvalidWebhookPayload


@dataclass(frozen=True)
class MembershipMapping:
    """
    Mapped membership payload.

    Attributes:
        values: Column values, without organization_id / user_id
        clerk_organization_id: Clerk ID of the organization (unresolved)
        clerk_user_id: Clerk ID of the user (unresolved)
    """

    values: Dict[str, Any]
    clerk_organization_id: str
    clerk_user_id: str


def from_unix_ms(value: Optional[int]) -> Optional[datetime]:
    """Convert a Unix millisecond timestamp to an aware UTC datetime (None stays None)."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _required_id(data: Dict[str, Any], entity: str) -> str:
    clerk_id = data.get("id")
    if not clerk_id:
        raise InvalidWebhookPayload(f"Missing {entity} id in payload")
    return clerk_id


def _required_timestamp(data: Dict[str, Any], field: str, entity: str) -> datetime:
    value = from_unix_ms(data.get(field))
    if value is None:
        raise InvalidWebhookPayload(f"Missing {field} in {entity} payload")
    return value


def resolve_primary_email(data: Dict[str, Any]) -> Optional[str]:
    """
    Return the address of the email entry designated as primary.

    No designation, or a designation pointing at an entry that is not in
    email_addresses, yields None.
    """
    primary_id = data.get("primary_email_address_id")
    if not primary_id:
        return None

    for email in data.get("email_addresses") or []:
        if email.get("id") == primary_id:
            return email.get("email_address")
    return None


def map_user_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Clerk user payload (user.created / user.updated) to users columns."""
    return {
        "clerk_id": _required_id(data, "user"),
        "first_name": data.get("first_name"),
        "last_name": data.get("last_name"),
        "email": resolve_primary_email(data),
        "image_url": data.get("image_url"),
        "has_image": data.get("has_image"),
        "username": data.get("username"),
        "password_enabled": data.get("password_enabled"),
        "two_factor_enabled": data.get("two_factor_enabled"),
        "banned": data.get("banned"),
        "locked": data.get("locked"),
        "external_id": data.get("external_id"),
        "public_metadata": data.get("public_metadata"),
        "private_metadata": data.get("private_metadata"),
        "unsafe_metadata": data.get("unsafe_metadata"),
        "last_sign_in_at": from_unix_ms(data.get("last_sign_in_at")),
        "last_active_at": from_unix_ms(data.get("last_active_at")),
        "created_at": _required_timestamp(data, "created_at", "user"),
        "updated_at": _required_timestamp(data, "updated_at", "user"),
    }


def map_organization_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a Clerk organization payload to organizations columns.

    members_count and pending_invitations_count default to 0 independently
    when Clerk omits them or sends null.
    """
    members_count = data.get("members_count")
    pending_invitations_count = data.get("pending_invitations_count")

    return {
        "clerk_id": _required_id(data, "organization"),
        "name": data.get("name"),
        "slug": data.get("slug"),
        "image_url": data.get("image_url"),
        "has_image": data.get("has_image"),
        "created_by": data.get("created_by"),
        "max_allowed_memberships": data.get("max_allowed_memberships"),
        "members_count": members_count if members_count is not None else 0,
        "pending_invitations_count": pending_invitations_count if pending_invitations_count is not None else 0,
        "admin_delete_enabled": data.get("admin_delete_enabled"),
        "public_metadata": data.get("public_metadata"),
        "private_metadata": data.get("private_metadata"),
        "created_at": _required_timestamp(data, "created_at", "organization"),
        "updated_at": _required_timestamp(data, "updated_at", "organization"),
    }


def map_membership_payload(data: Dict[str, Any]) -> MembershipMapping:
    """
    Map a Clerk organizationMembership payload.

    The organization ID comes from data.organization.id and the user ID from
    data.public_user_data.user_id. permissions stays None when absent or
    null; an empty list is kept as an empty list.
    """
    clerk_id = _required_id(data, "membership")
    clerk_organization_id = (data.get("organization") or {}).get("id")
    clerk_user_id = (data.get("public_user_data") or {}).get("user_id")

    if not clerk_organization_id or not clerk_user_id:
        raise InvalidWebhookPayload("Missing organization or user id in membership payload")

    values = {
        "clerk_id": clerk_id,
        "role": data.get("role"),
        "role_name": data.get("role_name"),
        "permissions": data.get("permissions"),
        "public_metadata": data.get("public_metadata"),
        "private_metadata": data.get("private_metadata"),
        "created_at": _required_timestamp(data, "created_at", "membership"),
        "updated_at": _required_timestamp(data, "updated_at", "membership"),
    }

    return MembershipMapping(
        values=values,
        clerk_organization_id=clerk_organization_id,
        clerk_user_id=clerk_user_id,
    )
