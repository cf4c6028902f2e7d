"""
campaign_insights/config.py – application settings loaded from environment variables.
"""
from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Klaviyo ───────────────────────────────────────────────────────────────
    klaviyo_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("klaviyo_new_api_key", "klaviyo_api_key"),
    )
    klaviyo_base_url: str = "https://a.klaviyo.com/api"
    klaviyo_revision: str = "2023-10-15"
    klaviyo_timeout_seconds: float = 20.0

    # ── Retry ─────────────────────────────────────────────────────────────────
    klaviyo_retry_attempts: int = 3
    klaviyo_retry_min_wait: float = 0.5
    klaviyo_retry_max_wait: float = 8.0

    # ── Listing ───────────────────────────────────────────────────────────────
    campaigns_page_size: int = 100
    campaigns_max_pages: int = 5
    resolve_missing_messages: bool = True

    # ── Search defaults ───────────────────────────────────────────────────────
    default_days: int = Field(
        default=90,
        validation_alias=AliasChoices("default_days", "mcp_default_days"),
    )
    default_limit: int = 25
    max_limit: int = 200
    enrichment_concurrency: int = 4
    request_timeout_seconds: float = 55.0

    # ── Themes ────────────────────────────────────────────────────────────────
    theme_extra_stop_words: list[str] = Field(default_factory=list)
    # None keeps the built-in brand and unsubscribe exclusions.
    theme_excluded_substrings: Optional[list[str]] = None

    # ── Rate limiting ─────────────────────────────────────────────────────────
    rate_limit_per_minute: int = 30

    # ── App ───────────────────────────────────────────────────────────────────
    app_name: str = "Campaign Insights – Klaviyo keyword search"
    app_version: str = "1.0.0"
    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("debug_mcp", "debug"),
    )
    log_level: str = "INFO"


settings = Settings()
