"""
campaign_insights/services/klaviyo_client.py – thin async wrapper around the Klaviyo REST API.

Key design decisions
────────────────────
• One httpx.AsyncClient per search invocation; nothing is shared across requests.
• Every call carries the API-key authorization and the fixed revision header.
• Retries on transient failures (429, 5xx, connection errors) with exponential
  backoff. After the last attempt the final response is returned unchanged so
  callers decide how a non-2xx status is surfaced.
• Never logs the API key.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from campaign_insights.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class _RetryableStatus(Exception):
    """Internal signal: the upstream answered with a retryable status code."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"retryable status {response.status_code}")
        self.response = response


def _is_transient(exc: BaseException) -> bool:
    """Return True for errors that are safe to retry."""
    if isinstance(exc, _RetryableStatus):
        return True
    return isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError))


def parse_json(response: httpx.Response) -> Optional[Any]:
    """Decode a JSON body; None when the body is empty or not JSON."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None


class KlaviyoClient:
    """Authenticated Klaviyo API client with retrying request helper."""

    def __init__(
        self,
        api_key: str,
        *,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("A Klaviyo API key is required.")
        cfg = config or default_settings
        self._retry_attempts = max(1, cfg.klaviyo_retry_attempts)
        self._retry_min_wait = cfg.klaviyo_retry_min_wait
        self._retry_max_wait = cfg.klaviyo_retry_max_wait
        self._http = httpx.AsyncClient(
            base_url=cfg.klaviyo_base_url,
            headers={
                "Accept": "application/json",
                "Authorization": f"Klaviyo-API-Key {api_key}",
                "revision": cfg.klaviyo_revision,
            },
            timeout=cfg.klaviyo_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "KlaviyoClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Public helpers ────────────────────────────────────────────────────────

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        return await self.request("POST", path, json=payload)

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request, retrying transient failures.

        Raises httpx.HTTPError when the transport keeps failing; a retryable
        status on the final attempt is returned as a normal response.
        """
        response: Optional[httpx.Response] = None
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(min=self._retry_min_wait, max=self._retry_max_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    response = await self._http.request(method, path, **kwargs)
                    if response.status_code in _RETRYABLE_STATUS:
                        raise _RetryableStatus(response)
        except _RetryableStatus as exc:
            response = exc.response

        logger.debug(
            "Klaviyo call completed",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )
        return response
