"""
campaign_insights/models.py – Pydantic v2 request / response schemas.
"""
from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field

Number = Union[int, float]


# ── Search response ──────────────────────────────────────────────────────────────────


class SubjectLineEntry(BaseModel):
    campaign_id: Optional[str]
    subject: str


class PerformanceMetricEntry(BaseModel):
    campaign_id: Optional[str]
    open_rate: Optional[Number] = None
    click_rate: Optional[Number] = None
    conversion_rate: Optional[Number] = None
    sent: Optional[Number] = None
    revenue: Optional[Number] = None


class ThemeEntry(BaseModel):
    campaign_id: Optional[str]
    themes: list[str] = Field(default_factory=list)


class CampaignRecord(BaseModel):
    id: Optional[str]
    name: str = ""
    subject_lines: list[str] = Field(default_factory=list)
    sent_at: Optional[str] = None
    preview_text: str = ""
    body_html: str = ""
    body_text: str = ""
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None
    metrics: Optional[dict[str, Any]] = None
    themes: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    keyword: str
    campaign_count: int
    subject_lines: list[SubjectLineEntry] = Field(default_factory=list)
    performance_metrics: list[PerformanceMetricEntry] = Field(default_factory=list)
    themes: list[ThemeEntry] = Field(default_factory=list)
    campaigns: list[CampaignRecord] = Field(default_factory=list)
    days_used: Number
    requested_limit: int


# ── Tools ─────────────────────────────────────────────────────────────────────


class ToolDescriptor(BaseModel):
    name: str
    description: str
    args: dict[str, Any]


class ErrorResponse(BaseModel):
    error: str
    details: Any = None


# ── Health ────────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str
    version: str
    klaviyo_key_configured: bool


class ReadinessResponse(BaseModel):
    ready: bool
    checks: dict[str, Any]
