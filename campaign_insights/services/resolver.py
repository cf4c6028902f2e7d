"""
campaign_insights/services/resolver.py – campaign → message → template resolution.

A campaign points at its message through
``relationships["campaign-messages"].data[0]``. The message is looked up in
the listing's ``included`` resources; when the upstream did not inline it, a
secondary lookup against the campaign-messages endpoints is made instead.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from campaign_insights.services.fields import FieldCandidates, dig, is_text, is_truthy
from campaign_insights.services.klaviyo_client import KlaviyoClient, parse_json

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "campaign-message"

SUBJECT = FieldCandidates(
    "subject",
    (
        ("attributes", "content", "subject"),
        ("attributes", "definition", "content", "subject"),
        ("attributes", "subject"),
    ),
    accept=is_text,
)
PREVIEW_TEXT = FieldCandidates(
    "preview_text",
    (
        ("attributes", "content", "preview_text"),
        ("attributes", "preview_text"),
    ),
    accept=is_text,
)
TEMPLATE_ID = FieldCandidates(
    "template_id",
    (("relationships", "template", "data", "id"),),
    accept=is_truthy,
)


@dataclass(frozen=True)
class ResolvedMessage:
    subject: Optional[str] = None
    preview_text: Optional[str] = None
    template_id: Optional[str] = None


EMPTY_MESSAGE = ResolvedMessage()


def message_pointer(item: dict[str, Any]) -> Optional[dict[str, Any]]:
    """First campaign-message relationship pointer of a campaign, if any."""
    data = dig(item, ("relationships", "campaign-messages", "data"))
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0]
    if isinstance(data, dict):
        return data
    return None


def find_included(included: list[dict[str, Any]], pointer: dict[str, Any]) -> Optional[dict[str, Any]]:
    wanted = str(pointer.get("id"))
    for resource in included:
        if resource.get("type", MESSAGE_TYPE) == MESSAGE_TYPE and str(resource.get("id")) == wanted:
            return resource
    return None


def read_message(message: Optional[dict[str, Any]]) -> ResolvedMessage:
    """Probe a message resource for subject, preview text and template id."""
    if not message:
        return EMPTY_MESSAGE
    template_id = TEMPLATE_ID.pick(message)
    return ResolvedMessage(
        subject=SUBJECT.pick(message),
        preview_text=PREVIEW_TEXT.pick(message),
        template_id=str(template_id) if template_id is not None else None,
    )


async def _lookup_message(
    client: KlaviyoClient, campaign_id: str, message_id: Optional[str]
) -> Optional[dict[str, Any]]:
    response = await client.get(f"campaigns/{campaign_id}/campaign-messages")
    if not response.is_success:
        logger.warning(
            "Campaign messages lookup failed",
            extra={"campaign_id": campaign_id, "status_code": response.status_code},
        )
        return None

    listed = dig(parse_json(response), ("data",))
    candidates = [m for m in listed if isinstance(m, dict)] if isinstance(listed, list) else []
    if message_id:
        # Only the message the pointer names may stand in for the detail call.
        message = next((m for m in candidates if str(m.get("id")) == message_id), None)
    else:
        message = candidates[0] if candidates else None
    resolved_id = message_id or (str(message["id"]) if message and message.get("id") else None)
    if not resolved_id:
        return message

    detail = await client.get(f"campaign-messages/{resolved_id}")
    if detail.is_success:
        data = dig(parse_json(detail), ("data",))
        if isinstance(data, dict):
            return data
    return message


async def resolve_message(
    item: dict[str, Any],
    included: list[dict[str, Any]],
    client: Optional[KlaviyoClient] = None,
) -> ResolvedMessage:
    """Resolve subject, preview text and template id for one raw campaign.

    Never raises for network or parse problems: those are logged and treated
    as "no message found" so one campaign cannot abort the batch.
    """
    pointer = message_pointer(item)
    if pointer is None:
        return EMPTY_MESSAGE

    message = find_included(included, pointer)
    if message is not None:
        return read_message(message)

    campaign_id = item.get("id")
    if client is None or not campaign_id:
        return EMPTY_MESSAGE

    message_id = str(pointer["id"]) if pointer.get("id") else None
    try:
        message = await _lookup_message(client, str(campaign_id), message_id)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning(
            "Message resolution failed; continuing without message",
            extra={"campaign_id": campaign_id, "error": str(exc)},
        )
        return EMPTY_MESSAGE
    return read_message(message)
