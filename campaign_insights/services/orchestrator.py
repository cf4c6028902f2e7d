"""
campaign_insights/services/orchestrator.py – keyword search pipeline.

Phases
──────
1. Validate  – keyword, days, limit and the API key (no upstream call before this).
2. Fetch     – paginated campaign listing; any failure aborts the request.
3. Normalize – resolve each campaign's message, then normalize its fields.
4. Filter    – keyword match first, truncate to `limit` second.
5. Enrich    – template content + metrics per match under a semaphore, then themes.
6. Assemble  – flatten into the SearchResponse, in match order.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from campaign_insights.config import Settings, settings as default_settings
from campaign_insights.errors import (
    CampaignSearchError,
    InternalError,
    MissingParameterError,
    RequestCancelled,
    ServerMisconfiguredError,
)
from campaign_insights.models import (
    CampaignRecord,
    PerformanceMetricEntry,
    SearchResponse,
    SubjectLineEntry,
    ThemeEntry,
)
from campaign_insights.services.content import (
    ContentExtract,
    ContentExtractor,
    analyze_template,
)
from campaign_insights.services.fetcher import CampaignListing, fetch_campaigns
from campaign_insights.services.klaviyo_client import KlaviyoClient
from campaign_insights.services.matcher import filter_campaigns
from campaign_insights.services.metrics import MetricRecord, fetch_metrics
from campaign_insights.services.normalizer import NormalizedCampaign, normalize
from campaign_insights.services.resolver import resolve_message
from campaign_insights.services.themes import (
    DEFAULT_VOCABULARY,
    ThemeExtractor,
    combined_text,
)

logger = logging.getLogger(__name__)

Number = Union[int, float]


def _ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


# ── Request validation ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SearchParams:
    keyword: str
    days: Number
    limit: int


def _finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def build_search_params(
    payload: Mapping[str, Any],
    *,
    default_days: Number = 90,
    default_limit: int = 25,
    max_limit: int = 200,
) -> SearchParams:
    """Validate the decoded request body.

    Raises:
        MissingParameterError: keyword absent or blank after trimming.
    """
    keyword = str(payload.get("keyword") or "").strip()
    if not keyword:
        raise MissingParameterError("keyword is required")

    days = _finite(payload.get("days"))
    if days is None:
        days = float(default_days)

    limit = _finite(payload.get("limit"))
    if limit is None:
        limit = float(default_limit)

    return SearchParams(
        keyword=keyword,
        days=int(days) if days.is_integer() else days,
        limit=max(1, min(int(limit), max_limit)),
    )


# ── Enrichment ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EnrichedCampaign:
    campaign: NormalizedCampaign
    content: ContentExtract
    metrics: MetricRecord
    themes: list[str]


async def _normalize_listing(
    listing: CampaignListing,
    client: Optional[KlaviyoClient],
    semaphore: asyncio.Semaphore,
) -> list[NormalizedCampaign]:
    async def _one(item: dict[str, Any]) -> NormalizedCampaign:
        async with semaphore:
            message = await resolve_message(item, listing.included, client)
        return normalize(item, message)

    return list(await asyncio.gather(*(_one(item) for item in listing.items)))


async def _enrich(
    campaign: NormalizedCampaign,
    params: SearchParams,
    client: KlaviyoClient,
    semaphore: asyncio.Semaphore,
    extractor: Optional[ContentExtractor],
    themes: ThemeExtractor,
) -> EnrichedCampaign:
    async with semaphore:
        content, metrics = await asyncio.gather(
            analyze_template(campaign.template_id, client, extractor),
            fetch_metrics(client, campaign.id, params.days),
        )
    return EnrichedCampaign(
        campaign=campaign,
        content=content,
        metrics=metrics,
        themes=themes.extract(combined_text(campaign, content.body_text)),
    )


# ── Assembly ──────────────────────────────────────────────────────────────────


def assemble_response(params: SearchParams, enriched: list[EnrichedCampaign]) -> SearchResponse:
    subject_lines: list[SubjectLineEntry] = []
    performance: list[PerformanceMetricEntry] = []
    themes: list[ThemeEntry] = []
    records: list[CampaignRecord] = []

    for entry in enriched:
        c = entry.campaign
        subject_lines.extend(
            SubjectLineEntry(campaign_id=c.id, subject=s) for s in c.subject_lines
        )
        performance.append(PerformanceMetricEntry(campaign_id=c.id, **entry.metrics.numbers()))
        themes.append(ThemeEntry(campaign_id=c.id, themes=entry.themes))
        records.append(
            CampaignRecord(
                id=c.id,
                name=c.name,
                subject_lines=list(c.subject_lines),
                sent_at=c.created_at,
                preview_text=c.preview_text,
                body_html=entry.content.body_html,
                body_text=entry.content.body_text,
                cta_text=entry.content.cta_text,
                cta_link=entry.content.cta_link,
                metrics=entry.metrics.raw,
                themes=entry.themes,
            )
        )

    return SearchResponse(
        keyword=params.keyword,
        campaign_count=len(records),
        subject_lines=subject_lines,
        performance_metrics=performance,
        themes=themes,
        campaigns=records,
        days_used=params.days,
        requested_limit=params.limit,
    )


# ── Pipeline ──────────────────────────────────────────────────────────────────


async def _run_pipeline(
    params: SearchParams,
    api_key: str,
    cfg: Settings,
    transport: Optional[httpx.AsyncBaseTransport],
    extractor: Optional[ContentExtractor],
    theme_extractor: ThemeExtractor,
) -> SearchResponse:
    total_start = time.perf_counter()
    try:
        async with KlaviyoClient(api_key, config=cfg, transport=transport) as client:
            t = time.perf_counter()
            listing = await fetch_campaigns(
                client,
                page_size=cfg.campaigns_page_size,
                max_pages=cfg.campaigns_max_pages,
            )
            fetch_ms = _ms(t)

            semaphore = asyncio.Semaphore(max(1, cfg.enrichment_concurrency))
            resolver_client = client if cfg.resolve_missing_messages else None
            campaigns = await _normalize_listing(listing, resolver_client, semaphore)
            matched = filter_campaigns(campaigns, params.keyword, params.limit)

            t = time.perf_counter()
            enriched = await asyncio.gather(
                *(
                    _enrich(c, params, client, semaphore, extractor, theme_extractor)
                    for c in matched
                )
            )
            enrich_ms = _ms(t)
    except CampaignSearchError:
        raise
    except Exception as exc:
        logger.exception("Campaign search failed unexpectedly")
        raise InternalError(f"Unexpected server error: {exc}", cause=exc) from exc

    logger.info(
        "Campaign search complete",
        extra={
            "keyword": params.keyword,
            "listed": len(campaigns),
            "matched": len(matched),
            "fetch_ms": fetch_ms,
            "enrich_ms": enrich_ms,
            "total_ms": _ms(total_start),
        },
    )
    return assemble_response(params, list(enriched))


async def _await_or_cancel(
    work: asyncio.Future,
    timeout: Optional[float],
    cancel_event: Optional[asyncio.Event],
) -> SearchResponse:
    """Wait for *work*; cancel it when the timeout expires or the event fires."""
    waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
    try:
        pending = {work} if waiter is None else {work, waiter}
        done, _ = await asyncio.wait(
            pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        if waiter is not None:
            waiter.cancel()
        if not work.done():
            work.cancel()
            # Drain so in-flight calls and the HTTP client are cleaned up.
            await asyncio.gather(work, return_exceptions=True)

    if work not in done:
        reason = "cancelled by caller" if waiter is not None and waiter in done else "timed out"
        logger.warning("Campaign search abandoned", extra={"reason": reason})
        raise RequestCancelled(f"Campaign search {reason}")
    return work.result()


async def search_campaigns(
    payload: Mapping[str, Any],
    *,
    config: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
    extractor: Optional[ContentExtractor] = None,
    theme_extractor: Optional[ThemeExtractor] = None,
) -> SearchResponse:
    """
    Run one keyword search end to end.

    Returns a complete SearchResponse or raises one CampaignSearchError
    subclass; partial payloads are never returned.
    """
    cfg = config or default_settings
    params = build_search_params(
        payload,
        default_days=cfg.default_days,
        default_limit=cfg.default_limit,
        max_limit=cfg.max_limit,
    )
    api_key = cfg.klaviyo_api_key
    if not api_key:
        raise ServerMisconfiguredError("Missing KLAVIYO_NEW_API_KEY or KLAVIYO_API_KEY")

    if theme_extractor is None:
        theme_extractor = ThemeExtractor(
            DEFAULT_VOCABULARY.extended(
                cfg.theme_extra_stop_words, cfg.theme_excluded_substrings
            )
        )

    logger.info(
        "Campaign search started",
        extra={"keyword": params.keyword, "days": params.days, "limit": params.limit},
    )
    work = asyncio.ensure_future(
        _run_pipeline(params, api_key, cfg, transport, extractor, theme_extractor)
    )
    return await _await_or_cancel(work, timeout, cancel_event)
