"""
campaign_insights/services/fetcher.py – paginated campaign listing.

Normalizes every response shape Klaviyo has returned over time into a single
CampaignListing(items, included):

    [ {...}, ... ]                              top-level array
    {"data": [...], "included": [...]}          JSON:API
    {"campaigns": [...]} / {"results": [...]}   legacy
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from campaign_insights.errors import UpstreamFetchError
from campaign_insights.services.klaviyo_client import KlaviyoClient, parse_json

logger = logging.getLogger(__name__)

SENT_EMAIL_FILTER = "and(equals(messages.channel,'email'),equals(status,'Sent'))"
MESSAGE_INCLUDE = "campaign-messages"


@dataclass(frozen=True)
class CampaignListing:
    items: list[dict[str, Any]] = field(default_factory=list)
    included: list[dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0


def _as_dicts(values: Any) -> list[dict[str, Any]]:
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, dict)]


def split_listing(payload: Any) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Return (items, included) for any supported listing shape."""
    if isinstance(payload, list):
        return _as_dicts(payload), []
    if not isinstance(payload, dict):
        return [], []

    included = _as_dicts(payload.get("included"))
    for key in ("data", "campaigns", "results"):
        if isinstance(payload.get(key), list):
            return _as_dicts(payload[key]), included
    return [], included


def _next_link(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    links = payload.get("links")
    if isinstance(links, dict) and isinstance(links.get("next"), str) and links["next"]:
        return links["next"]
    return None


async def fetch_campaigns(
    client: KlaviyoClient,
    *,
    page_size: int = 100,
    max_pages: int = 1,
) -> CampaignListing:
    """Fetch sent email campaigns with their messages inlined.

    Follows JSON:API ``links.next`` for at most *max_pages* pages.

    Raises:
        UpstreamFetchError: the listing call returned a non-2xx status or
            could not be completed at all. There is no partial recovery.
    """
    items: list[dict[str, Any]] = []
    included: list[dict[str, Any]] = []
    pages = 0

    url: Optional[str] = "campaigns"
    params: Optional[dict[str, Any]] = {
        "filter": SENT_EMAIL_FILTER,
        "include": MESSAGE_INCLUDE,
        "page[size]": page_size,
    }

    while url and pages < max(1, max_pages):
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(
                f"Failed to fetch campaigns: {exc}", details=str(exc), cause=exc
            ) from exc

        if not response.is_success:
            details = parse_json(response)
            raise UpstreamFetchError(
                "Failed to fetch campaigns",
                upstream_status=response.status_code,
                details=details if details is not None else response.text,
            )

        payload = parse_json(response)
        page_items, page_included = split_listing(payload)
        items.extend(page_items)
        included.extend(page_included)
        pages += 1

        # The next link already carries every query parameter.
        url, params = _next_link(payload), None

    if not items:
        shape = sorted(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
        logger.warning("Campaign listing returned no items", extra={"payload_shape": shape})

    logger.info(
        "Fetched campaign listing",
        extra={"items": len(items), "included": len(included), "pages": pages},
    )
    return CampaignListing(items=items, included=included, pages_fetched=pages)
