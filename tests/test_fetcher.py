"""
tests/test_fetcher.py – listing shapes, pagination and upstream failures.
"""
from __future__ import annotations

import asyncio

import httpx
import pytest

from campaign_insights.errors import UpstreamFetchError
from campaign_insights.services.fetcher import (
    MESSAGE_INCLUDE,
    SENT_EMAIL_FILTER,
    CampaignListing,
    fetch_campaigns,
    split_listing,
)
from campaign_insights.services.klaviyo_client import KlaviyoClient
from tests.fakes import sample_listing


def _fetch(fake, settings, **kwargs) -> CampaignListing:
    async def _run():
        async with KlaviyoClient("test-key", config=settings, transport=fake.transport) as client:
            return await fetch_campaigns(client, **kwargs)

    return asyncio.run(_run())


class TestSplitListing:
    def test_top_level_array(self):
        assert split_listing([{"id": "1"}, "junk", {"id": "2"}]) == ([{"id": "1"}, {"id": "2"}], [])

    def test_json_api_document(self):
        items, included = split_listing(sample_listing())
        assert [i["id"] for i in items] == ["C1", "C2", "C3"]
        assert [m["id"] for m in included] == ["M1", "M2", "M3"]

    @pytest.mark.parametrize("key", ["campaigns", "results"])
    def test_legacy_keys(self, key):
        assert split_listing({key: [{"id": "1"}]}) == ([{"id": "1"}], [])

    def test_data_wins_over_legacy_keys(self):
        items, _ = split_listing({"data": [{"id": "d"}], "campaigns": [{"id": "c"}]})
        assert items == [{"id": "d"}]

    @pytest.mark.parametrize("payload", [None, "text", {"data": {"id": "1"}}, {}])
    def test_unrecognized_shapes_are_empty(self, payload):
        assert split_listing(payload) == ([], [])


def test_sends_filter_include_and_page_size(fake_klaviyo, test_settings):
    fake_klaviyo.add("GET", "campaigns", json_body=sample_listing())
    listing = _fetch(fake_klaviyo, test_settings, page_size=50)

    assert len(listing.items) == 3
    assert listing.pages_fetched == 1
    params = fake_klaviyo.requests[0].url.params
    assert params["filter"] == SENT_EMAIL_FILTER
    assert params["include"] == MESSAGE_INCLUDE
    assert params["page[size]"] == "50"


def test_follows_next_links_up_to_max_pages(fake_klaviyo, test_settings):
    def page(request: httpx.Request) -> httpx.Response:
        cursor = request.url.params.get("page[cursor]")
        number = int(cursor) if cursor else 1
        return httpx.Response(
            200,
            json={
                "data": [{"type": "campaign", "id": f"P{number}"}],
                "included": [],
                "links": {"next": f"https://a.klaviyo.com/api/campaigns?page[cursor]={number + 1}"},
            },
        )

    fake_klaviyo.add("GET", "campaigns", handler=page)
    listing = _fetch(fake_klaviyo, test_settings, max_pages=3)

    assert [i["id"] for i in listing.items] == ["P1", "P2", "P3"]
    assert listing.pages_fetched == 3
    assert len(fake_klaviyo.requests) == 3


def test_stops_when_next_link_is_absent(fake_klaviyo, test_settings):
    fake_klaviyo.add("GET", "campaigns", json_body=sample_listing())
    listing = _fetch(fake_klaviyo, test_settings, max_pages=5)
    assert listing.pages_fetched == 1
    assert len(fake_klaviyo.requests) == 1


def test_empty_listing_is_not_an_error(fake_klaviyo, test_settings):
    fake_klaviyo.add("GET", "campaigns", json_body={"data": []})
    assert _fetch(fake_klaviyo, test_settings).items == []


def test_error_status_raises_with_upstream_body(fake_klaviyo, test_settings):
    body = {"errors": [{"status": 403, "detail": "bad key"}]}
    fake_klaviyo.add("GET", "campaigns", status_code=403, json_body=body)

    with pytest.raises(UpstreamFetchError) as excinfo:
        _fetch(fake_klaviyo, test_settings)

    assert excinfo.value.upstream_status == 403
    assert excinfo.value.details == body
    assert excinfo.value.status_code == 502


def test_error_status_with_text_body(fake_klaviyo, test_settings):
    fake_klaviyo.add("GET", "campaigns", status_code=401, text="Unauthorized")
    with pytest.raises(UpstreamFetchError) as excinfo:
        _fetch(fake_klaviyo, test_settings)
    assert excinfo.value.details == "Unauthorized"


def test_network_failure_raises_without_status(fake_klaviyo, test_settings):
    fake_klaviyo.add("GET", "campaigns", exc=httpx.ConnectError("connection refused"))
    with pytest.raises(UpstreamFetchError) as excinfo:
        _fetch(fake_klaviyo, test_settings)
    assert excinfo.value.upstream_status is None
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_failure_on_a_later_page_fails_the_listing(fake_klaviyo, test_settings):
    def page(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("page[cursor]"):
            return httpx.Response(400, json={"errors": ["bad cursor"]})
        return httpx.Response(
            200,
            json={"data": [{"id": "C1"}], "links": {"next": "https://a.klaviyo.com/api/campaigns?page[cursor]=2"}},
        )

    fake_klaviyo.add("GET", "campaigns", handler=page)
    with pytest.raises(UpstreamFetchError) as excinfo:
        _fetch(fake_klaviyo, test_settings, max_pages=2)
    assert excinfo.value.upstream_status == 400
