"""
campaign_insights/services/matcher.py – case-insensitive keyword filter.
"""
from __future__ import annotations

from typing import Iterable, Iterator

from campaign_insights.errors import MissingParameterError
from campaign_insights.services.normalizer import NormalizedCampaign


def _haystacks(campaign: NormalizedCampaign) -> Iterator[str]:
    yield campaign.name
    yield from campaign.subject_lines
    yield campaign.preview_text


def matches(campaign: NormalizedCampaign, keyword: str) -> bool:
    """True when *keyword* occurs in the name, any subject line or the preview text."""
    needle = (keyword or "").strip().lower()
    if not needle:
        raise MissingParameterError("keyword is required")
    return any(needle in (text or "").lower() for text in _haystacks(campaign))


def filter_campaigns(
    campaigns: Iterable[NormalizedCampaign], keyword: str, limit: int
) -> list[NormalizedCampaign]:
    """Keep matching campaigns in input order, then truncate to *limit*."""
    matched = [c for c in campaigns if matches(c, keyword)]
    return matched[: max(0, limit)]
