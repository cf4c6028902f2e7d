"""
campaign_insights/services/content.py – template HTML → plain text and call to action.

The extraction heuristics sit behind ContentExtractor so they can be swapped
(e.g. for a real HTML parser) without touching the pipeline. The default
RegexContentExtractor tries its CTA patterns in order:

1. a <td> whose class carries ``kl-button`` → text of its first <p>
2. an <a> whose class carries ``button`` → its inner text

The CTA link is the first anchor href from the matched block onwards, else the
first anchor href in the whole document.
"""
from __future__ import annotations

import html as html_lib
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from campaign_insights.services.fields import FieldCandidates, is_text
from campaign_insights.services.klaviyo_client import KlaviyoClient, parse_json

logger = logging.getLogger(__name__)

_BLOCK_RE = re.compile(r"<(style|script)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>?")
_WHITESPACE_RE = re.compile(r"\s+")
_HREF_RE = re.compile(r"""<a\b[^>]*?\bhref=["']([^"']+)["'][^>]*>""", re.IGNORECASE)

BUTTON_CELL_RE = re.compile(
    r"""<td\b[^>]*\bclass=["']?[^"'>]*\bkl-button\b[^>]*>.*?<p\b[^>]*>([^<]+)</p>""",
    re.IGNORECASE | re.DOTALL,
)
BUTTON_ANCHOR_RE = re.compile(
    r"""<a\b[^>]*\bclass=["']?[^"'>]*\bbutton\b[^>]*>(.*?)</a>""",
    re.IGNORECASE | re.DOTALL,
)

TEMPLATE_HTML = FieldCandidates(
    "html",
    (
        ("data", "attributes", "html"),
        ("data", "attributes", "content"),
        ("html",),
        ("content",),
    ),
    accept=is_text,
)


@dataclass(frozen=True)
class ContentExtract:
    body_html: str = ""
    body_text: str = ""
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None


EMPTY_EXTRACT = ContentExtract()


# ── Text helpers ──────────────────────────────────────────────────────────────


def strip_tags(markup: str) -> str:
    """Replace tags with spaces, decode entities and collapse whitespace."""
    if not markup:
        return ""
    text = html_lib.unescape(_TAG_RE.sub(" ", str(markup)))
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_body_text(markup: str) -> str:
    """Plain text of an email body without style, script or comment content."""
    if not markup:
        return ""
    cleaned = _BLOCK_RE.sub(" ", str(markup))
    cleaned = _COMMENT_RE.sub(" ", cleaned)
    return strip_tags(cleaned)


def first_href(markup: str) -> Optional[str]:
    match = _HREF_RE.search(markup or "")
    return match.group(1).strip() if match else None


# ── Extraction strategies ─────────────────────────────────────────────────────


class ContentExtractor:
    """
    Interface for turning one HTML document into a ContentExtract.
    Implement this class to replace the regex heuristics.
    """

    def extract(self, body_html: str) -> ContentExtract:
        raise NotImplementedError


class RegexContentExtractor(ContentExtractor):
    """Best-effort regex heuristics tuned for Klaviyo-rendered templates."""

    cta_patterns: tuple[re.Pattern[str], ...] = (BUTTON_CELL_RE, BUTTON_ANCHOR_RE)

    def find_cta(self, body_html: str) -> Optional[tuple[str, int]]:
        """Return (cta_text, block_start) for the first pattern yielding text."""
        for pattern in self.cta_patterns:
            match = pattern.search(body_html)
            if match is None:
                continue
            text = strip_tags(match.group(1))
            if text:
                return text, match.start()
        return None

    def extract(self, body_html: str) -> ContentExtract:
        if not body_html:
            return EMPTY_EXTRACT

        cta_text: Optional[str] = None
        cta_link: Optional[str] = None
        found = self.find_cta(body_html)
        if found is not None:
            cta_text, start = found
            cta_link = first_href(body_html[start:])
        if cta_link is None:
            cta_link = first_href(body_html)

        return ContentExtract(
            body_html=body_html,
            body_text=clean_body_text(body_html),
            cta_text=cta_text,
            cta_link=cta_link,
        )


# ── Template fetch ────────────────────────────────────────────────────────────


def template_html(payload: Any) -> str:
    """Pull the rendered HTML out of a template response, across schema variants."""
    return TEMPLATE_HTML.pick(payload) or ""


async def analyze_template(
    template_id: Optional[str],
    client: KlaviyoClient,
    extractor: Optional[ContentExtractor] = None,
) -> ContentExtract:
    """Fetch a template and derive its ContentExtract.

    A missing template id is a normal outcome and makes no network call.
    Fetch, parse and extraction failures degrade to an empty extract.
    """
    if not template_id:
        return EMPTY_EXTRACT

    try:
        response = await client.get(f"templates/{template_id}")
    except httpx.HTTPError as exc:
        logger.warning(
            "Template fetch failed",
            extra={"template_id": template_id, "error": str(exc)},
        )
        return EMPTY_EXTRACT

    if not response.is_success:
        logger.warning(
            "Template fetch returned an error status",
            extra={"template_id": template_id, "status_code": response.status_code},
        )
        return EMPTY_EXTRACT

    body_html = template_html(parse_json(response))
    if not body_html:
        logger.info("Template has no HTML content", extra={"template_id": template_id})
        return EMPTY_EXTRACT

    try:
        return (extractor or RegexContentExtractor()).extract(body_html)
    except Exception as exc:
        logger.warning(
            "Template content extraction failed",
            extra={"template_id": template_id, "error": str(exc)},
        )
        return EMPTY_EXTRACT
