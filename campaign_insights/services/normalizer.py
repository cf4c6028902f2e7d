"""
campaign_insights/services/normalizer.py – raw campaign resource → NormalizedCampaign.

Pure functions only. Candidates are evaluated against a two-key view,
``{"item": <raw>, "attributes": <scope>}``, where the attribute scope is the
raw ``attributes`` mapping or, for flat legacy shapes, the raw item itself.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from campaign_insights.services.fields import FieldCandidates, is_text, is_truthy
from campaign_insights.services.resolver import ResolvedMessage

CAMPAIGN_ID = FieldCandidates(
    "id",
    (
        ("item", "id"),
        ("item", "campaign_id"),
        ("item", "uid"),
        ("item", "attributes", "id"),
    ),
    accept=is_truthy,
)
NAME = FieldCandidates(
    "name",
    (
        ("attributes", "name"),
        ("attributes", "title"),
        ("item", "name"),
        ("item", "title"),
    ),
    accept=is_truthy,
)
CREATED_AT = FieldCandidates(
    "created_at",
    (
        ("attributes", "created_at"),
        ("attributes", "created"),
        ("attributes", "sent_at"),
        ("attributes", "scheduled"),
        ("item", "created_at"),
        ("item", "sent_at"),
    ),
    accept=is_truthy,
)
SUBJECT_LIST = FieldCandidates(
    "subject_lines",
    (("attributes", "subject_lines"),),
    accept=lambda v: isinstance(v, list),
)
PLAIN_SUBJECT = FieldCandidates(
    "subject",
    (("attributes", "subject"), ("item", "subject")),
    accept=is_truthy,
)


@dataclass(frozen=True)
class NormalizedCampaign:
    id: Optional[str]
    name: str = ""
    subject_lines: tuple[str, ...] = ()
    created_at: Optional[str] = None
    preview_text: str = ""
    template_id: Optional[str] = None


def unique_subjects(candidates: Iterable[Any]) -> tuple[str, ...]:
    """Drop falsy entries and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in candidates:
        if not value:
            continue
        text = value if isinstance(value, str) else str(value)
        if is_text(text):
            seen.setdefault(text, None)
    return tuple(seen)


def _view(item: Mapping[str, Any]) -> dict[str, Any]:
    attributes = item.get("attributes")
    scope = attributes if isinstance(attributes, Mapping) and attributes else item
    return {"item": item, "attributes": scope}


def normalize(item: Mapping[str, Any], message: ResolvedMessage) -> NormalizedCampaign:
    view = _view(item)

    campaign_id = CAMPAIGN_ID.pick(view)
    created_at = CREATED_AT.pick(view)
    subjects = [message.subject, *(SUBJECT_LIST.pick(view) or []), *PLAIN_SUBJECT.values(view)]

    return NormalizedCampaign(
        id=str(campaign_id) if campaign_id is not None else None,
        name=str(NAME.pick(view) or ""),
        subject_lines=unique_subjects(subjects),
        created_at=str(created_at) if created_at is not None else None,
        preview_text=message.preview_text or "",
        template_id=message.template_id,
    )
