"""
campaign_insights/errors.py – request-level failure taxonomy.

Every exception here aborts the whole search and maps onto one HTTP error
body. Per-campaign enrichment failures never raise; they degrade to defaults
inside the services.
"""
from __future__ import annotations

import traceback
from typing import Any, Optional


class CampaignSearchError(Exception):
    """Base class for failures surfaced to the caller as a single error body."""

    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.__cause__ = cause

    def to_payload(self, debug: bool = False) -> dict[str, Any]:
        return {"error": self.error_code, "details": self.message}


class MissingParameterError(CampaignSearchError, ValueError):
    """A required request parameter (the keyword) is absent or blank."""

    error_code = "missing_parameter"
    status_code = 400


class ServerMisconfiguredError(CampaignSearchError):
    """The service lacks configuration it needs, e.g. the Klaviyo API key."""

    error_code = "server_misconfigured"
    status_code = 500


class UpstreamFetchError(CampaignSearchError):
    """The campaign listing call failed; carries the upstream status and body."""

    error_code = "upstream_fetch_failed"
    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        details: Any = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.upstream_status = upstream_status
        self.details = details

    def to_payload(self, debug: bool = False) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "upstream_status": self.upstream_status,
            "details": self.details,
        }


class RequestCancelled(CampaignSearchError):
    """The caller's timeout expired or its cancel signal fired mid-search."""

    error_code = "request_cancelled"
    status_code = 504


class InternalError(CampaignSearchError):
    """Unexpected exception anywhere in the pipeline."""

    error_code = "internal_error"
    status_code = 500

    def to_payload(self, debug: bool = False) -> dict[str, Any]:
        payload = super().to_payload(debug)
        if debug and self.__cause__ is not None:
            payload["stack"] = "".join(
                traceback.format_exception(
                    type(self.__cause__), self.__cause__, self.__cause__.__traceback__
                )
            )
        return payload
