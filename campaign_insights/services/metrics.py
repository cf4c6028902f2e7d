"""
campaign_insights/services/metrics.py – per-campaign performance report.

Metrics are best-effort: any failure yields the all-null MetricRecord so one
campaign can never fail the batch. Aliases fall back only on missing/None
values, so a genuine 0% rate is kept rather than treated as missing.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Optional, Union

import httpx

from campaign_insights.services.fields import FieldCandidates, is_present
from campaign_insights.services.klaviyo_client import KlaviyoClient, parse_json

logger = logging.getLogger(__name__)

REPORT_PATH = "campaign-values-reports/"

Number = Union[int, float]

OPEN_RATE = FieldCandidates("open_rate", (("open_rate",), ("open_rate_pct",)), is_present)
CLICK_RATE = FieldCandidates("click_rate", (("click_rate",), ("click_rate_pct",)), is_present)
CONVERSION_RATE = FieldCandidates(
    "conversion_rate", (("conversion_rate",), ("conversion_rate_pct",)), is_present
)
SENT = FieldCandidates("sent", (("recipients",), ("number_sent",), ("sent",)), is_present)
REVENUE = FieldCandidates("revenue", (("revenue",), ("total_revenue",)), is_present)


@dataclass(frozen=True)
class MetricRecord:
    open_rate: Optional[Number] = None
    click_rate: Optional[Number] = None
    conversion_rate: Optional[Number] = None
    sent: Optional[Number] = None
    revenue: Optional[Number] = None
    raw: Optional[dict[str, Any]] = None

    def numbers(self) -> dict[str, Optional[Number]]:
        return {
            "open_rate": self.open_rate,
            "click_rate": self.click_rate,
            "conversion_rate": self.conversion_rate,
            "sent": self.sent,
            "revenue": self.revenue,
        }


EMPTY_METRICS = MetricRecord()


def to_finite_number(value: Any) -> Optional[Number]:
    """Coerce to a finite int/float; garbage, NaN and infinities become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Real):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return None
    else:
        return None
    if isinstance(number, float) and not math.isfinite(number):
        return None
    return number if isinstance(number, int) else float(number)


def parse_report(payload: Any) -> MetricRecord:
    """Map an aliased report payload onto the canonical MetricRecord."""
    if not isinstance(payload, dict):
        return EMPTY_METRICS
    return MetricRecord(
        open_rate=to_finite_number(OPEN_RATE.pick(payload)),
        click_rate=to_finite_number(CLICK_RATE.pick(payload)),
        conversion_rate=to_finite_number(CONVERSION_RATE.pick(payload)),
        sent=to_finite_number(SENT.pick(payload)),
        revenue=to_finite_number(REVENUE.pick(payload)),
        raw=payload,
    )


async def fetch_metrics(
    client: KlaviyoClient, campaign_id: Optional[str], since_days: Number
) -> MetricRecord:
    if not campaign_id:
        return EMPTY_METRICS

    try:
        response = await client.post(
            REPORT_PATH, {"campaign_id": campaign_id, "since_days": since_days}
        )
    except httpx.HTTPError as exc:
        logger.warning(
            "Metrics request failed",
            extra={"campaign_id": campaign_id, "error": str(exc)},
        )
        return EMPTY_METRICS

    if not response.is_success:
        logger.warning(
            "Metrics request returned an error status",
            extra={"campaign_id": campaign_id, "status_code": response.status_code},
        )
        return EMPTY_METRICS

    payload = parse_json(response)
    return parse_report(payload if payload is not None else {})
