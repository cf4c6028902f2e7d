"""
tests/test_matcher.py – keyword matching and filter-then-truncate ordering.
"""
from __future__ import annotations

import pytest

from campaign_insights.errors import MissingParameterError
from campaign_insights.services.matcher import filter_campaigns, matches
from campaign_insights.services.normalizer import NormalizedCampaign


def _campaign(cid: str, name: str = "", subjects: tuple[str, ...] = (), preview: str = "") -> NormalizedCampaign:
    return NormalizedCampaign(id=cid, name=name, subject_lines=subjects, preview_text=preview)


CAMPAIGNS = [
    _campaign("1", name="Summer Sale Kickoff"),
    _campaign("2", subjects=("Last chance", "Final SALE hours")),
    _campaign("3", preview="our biggest sale yet"),
    _campaign("4", name="Newsletter", subjects=("Monthly update",)),
    _campaign("5", name="Clearance sale"),
]


class TestMatches:
    def test_name_match(self):
        assert matches(CAMPAIGNS[0], "summer")

    def test_subject_match(self):
        assert matches(CAMPAIGNS[1], "final sale")

    def test_preview_match(self):
        assert matches(CAMPAIGNS[2], "BIGGEST")

    def test_no_match(self):
        assert not matches(CAMPAIGNS[3], "sale")

    def test_campaign_without_text_never_matches(self):
        assert not matches(_campaign("x"), "a")

    @pytest.mark.parametrize("keyword", ["", "   ", None])
    def test_empty_keyword_is_an_error(self, keyword):
        with pytest.raises(MissingParameterError):
            matches(CAMPAIGNS[0], keyword)


class TestFilterCampaigns:
    def test_case_insensitive_match_sets_are_identical(self):
        upper = [c.id for c in filter_campaigns(CAMPAIGNS, "SALE", 100)]
        lower = [c.id for c in filter_campaigns(CAMPAIGNS, "sale", 100)]
        assert upper == lower == ["1", "2", "3", "5"]

    def test_truncates_after_filtering(self):
        assert [c.id for c in filter_campaigns(CAMPAIGNS, "sale", 2)] == ["1", "2"]

    def test_non_matching_campaigns_do_not_consume_the_limit(self):
        shuffled = [CAMPAIGNS[3], CAMPAIGNS[3], CAMPAIGNS[4]]
        assert [c.id for c in filter_campaigns(shuffled, "sale", 1)] == ["5"]
