"""Translate identity-provider organization events into community directory calls."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Tuple

from nerdtalk.metrics import record_webhook_event
from nerdtalk.services.communities import (
    add_member,
    create_community,
    delete_community,
    remove_member,
    update_community_info,
)

logger = logging.getLogger(__name__)

DEFAULT_COMMUNITY_BIO = "org bio"


def _on_org_created(data: Dict[str, Any]) -> Tuple[int, str]:
    create_community(
        data.get("id"),
        data.get("name"),
        username=data.get("slug"),
        image=data.get("logo_url") or data.get("image_url"),
        bio=DEFAULT_COMMUNITY_BIO,
        created_by=data.get("created_by"),
    )
    return 201, "Community created"


def _on_org_updated(data: Dict[str, Any]) -> Tuple[int, str]:
    update_community_info(
        data.get("id"),
        name=data.get("name"),
        username=data.get("slug"),
        image=data.get("logo_url") or data.get("image_url"),
    )
    return 201, "Community updated"


def _on_org_deleted(data: Dict[str, Any]) -> Tuple[int, str]:
    delete_community(data.get("id"))
    return 201, "Community deleted"


def _membership_ids(data: Dict[str, Any]) -> Tuple[Any, Any]:
    organization = data.get("organization") or {}
    public_user = data.get("public_user_data") or {}
    return organization.get("id"), public_user.get("user_id")


def _on_membership_created(data: Dict[str, Any]) -> Tuple[int, str]:
    org_id, user_id = _membership_ids(data)
    add_member(org_id, user_id)
    return 201, "Member added"


def _on_membership_deleted(data: Dict[str, Any]) -> Tuple[int, str]:
    org_id, user_id = _membership_ids(data)
    remove_member(org_id, user_id)
    return 201, "Member removed"


def _on_invitation_created(data: Dict[str, Any]) -> Tuple[int, str]:
    # Nothing to store until the invitee actually joins
    return 201, "Invitation created"


HANDLERS: Dict[str, Callable[[Dict[str, Any]], Tuple[int, str]]] = {
    "organization.created": _on_org_created,
    "organization.updated": _on_org_updated,
    "organization.deleted": _on_org_deleted,
    "organizationMembership.created": _on_membership_created,
    "organizationMembership.deleted": _on_membership_deleted,
    "organizationInvitation.created": _on_invitation_created,
}


def handle_org_event(event: Dict[str, Any]) -> Tuple[int, str]:
    """Dispatch one verified event; returns (status_code, message)."""
    event_type = event.get("type")
    handler = HANDLERS.get(event_type or "")
    if handler is None:
        logger.warning("ignoring webhook event type %s", event_type)
        record_webhook_event(event_type, "ignored")
        return 404, "Not Found"

    data = event.get("data") or {}
    try:
        status, message = handler(data)
    except Exception:
        record_webhook_event(event_type, "failed")
        raise
    record_webhook_event(event_type, "handled")
    logger.info("webhook %s handled: %s", event_type, message)
    return status, message
