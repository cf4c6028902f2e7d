"""
campaign_insights/services/themes.py – frequency-ranked recurring words.

Ranking is deterministic: Counter keeps first-insertion order and
most_common() sorts stably, so equal counts stay in first-seen order.
"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from campaign_insights.services.normalizer import NormalizedCampaign

_TOKEN_SPLIT_RE = re.compile(r"[\W_]+")

DEFAULT_STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "and", "for", "you", "with", "to", "of", "in", "on", "at",
        "is", "it", "from", "by", "as", "we", "i", "a", "an", "only", "out",
        "up", "down", "here", "now", "or", "your", "us", "our", "what", "day",
    }
)

DEFAULT_EXCLUDED_SUBSTRINGS: tuple[str, ...] = ("klaviyo", "unsubscribe")


@dataclass(frozen=True)
class ThemeVocabulary:
    stop_words: frozenset[str] = DEFAULT_STOP_WORDS
    excluded_substrings: tuple[str, ...] = DEFAULT_EXCLUDED_SUBSTRINGS
    min_length: int = 3
    max_themes: int = 5

    def extended(
        self,
        extra_stop_words: Iterable[str] = (),
        excluded_substrings: Optional[Iterable[str]] = None,
    ) -> "ThemeVocabulary":
        """Copy with additional stop words and, optionally, other exclusions."""
        stop_words = self.stop_words | {w.strip().lower() for w in extra_stop_words if w.strip()}
        exclusions = self.excluded_substrings
        if excluded_substrings is not None:
            exclusions = tuple(s.strip().lower() for s in excluded_substrings if s.strip())
        return replace(self, stop_words=frozenset(stop_words), excluded_substrings=exclusions)


DEFAULT_VOCABULARY = ThemeVocabulary()


class ThemeExtractor:
    def __init__(self, vocabulary: ThemeVocabulary = DEFAULT_VOCABULARY) -> None:
        self.vocabulary = vocabulary

    def is_significant(self, token: str) -> bool:
        vocab = self.vocabulary
        if len(token) < vocab.min_length or token in vocab.stop_words:
            return False
        return not any(s in token for s in vocab.excluded_substrings)

    def tokenize(self, text: str) -> list[str]:
        tokens = _TOKEN_SPLIT_RE.split((text or "").lower())
        return [t for t in tokens if t and self.is_significant(t)]

    def extract(self, text: str) -> list[str]:
        counts = Counter(self.tokenize(text))
        return [token for token, _ in counts.most_common(self.vocabulary.max_themes)]


def combined_text(campaign: NormalizedCampaign, body_text: str = "") -> str:
    """Name, preview text, every subject line and the body, space-joined."""
    parts = [campaign.name, campaign.preview_text, *campaign.subject_lines, body_text]
    return " ".join(p for p in parts if p)
