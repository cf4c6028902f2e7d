"""
tests/conftest.py – shared pytest configuration and upstream fixtures.

Integration tests (marked with @pytest.mark.integration) are skipped by
default. Pass --integration to opt in:

    pytest --integration tests/test_integration.py -v
"""
from __future__ import annotations

import httpx
import pytest

from campaign_insights.config import Settings
from tests.fakes import SUMMER_TEMPLATE_HTML, FakeKlaviyo, request_json, sample_listing


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="Run integration tests that make real Klaviyo API calls.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if not config.getoption("--integration"):
        skip = pytest.mark.skip(reason="Pass --integration to run this test.")
        for item in items:
            if item.get_closest_marker("integration"):
                item.add_marker(skip)


@pytest.fixture
def fake_klaviyo() -> FakeKlaviyo:
    return FakeKlaviyo()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        klaviyo_api_key="test-key",
        klaviyo_retry_attempts=1,
        klaviyo_retry_min_wait=0,
        klaviyo_retry_max_wait=0,
        campaigns_max_pages=5,
    )


@pytest.fixture
def sample_upstream(fake_klaviyo: FakeKlaviyo) -> FakeKlaviyo:
    """Fake upstream pre-loaded with three campaigns, two templates and metrics."""
    fake_klaviyo.add("GET", "campaigns", json_body=sample_listing())
    fake_klaviyo.add(
        "GET",
        "templates/T1",
        json_body={"data": {"type": "template", "id": "T1", "attributes": {"html": SUMMER_TEMPLATE_HTML}}},
    )
    fake_klaviyo.add(
        "GET",
        "templates/T2",
        json_body={"data": {"type": "template", "id": "T2", "attributes": {"html": "<p>Warm coats</p>"}}},
    )

    reports = {
        "C1": {"open_rate": 0.42, "click_rate": "0.05", "conversion_rate": 0, "recipients": 1200, "revenue": "350.5"},
        "C2": {"open_rate_pct": 31.5, "click_rate_pct": 2.1, "number_sent": 800, "total_revenue": 99},
        "C3": {"open_rate": "n/a", "sent": 10},
    }

    def report(request: httpx.Request) -> httpx.Response:
        body = request_json(request)
        return httpx.Response(200, json=reports.get(body["campaign_id"], {}))

    fake_klaviyo.add("POST", "campaign-values-reports/", handler=report)
    return fake_klaviyo
