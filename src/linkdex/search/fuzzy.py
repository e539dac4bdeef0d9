"""Character-level approximate matching independent of tokenization."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from rapidfuzz import fuzz

from linkdex.config import FUZZY_THRESHOLD


@dataclass(frozen=True)
class PreparedTitle:
    """Lower-cased title with its character multiset for fast rejection."""

    lowered: str
    signature: Counter

    @classmethod
    def prepare(cls, title: str) -> "PreparedTitle":
        lowered = title.lower()
        return cls(lowered=lowered, signature=Counter(lowered.replace(" ", "")))


def _query_chars(query: str) -> str:
    return "".join(query.lower().split())


def _is_subsequence(needle: str, haystack: str) -> bool:
    remaining = iter(haystack)
    return all(char in remaining for char in needle)


class FuzzyMatcher:
    """Scores titles that contain the query's characters in order.

    A query matches a title only when every query character (ignoring
    whitespace) appears in the title in sequence, so matches may cross
    word boundaries. Matching titles are scored with rapidfuzz's
    best-substring ratio.
    """

    def __init__(self, prepared: Sequence[PreparedTitle]) -> None:
        self._prepared = tuple(prepared)

    @classmethod
    def build(cls, titles: Sequence[str]) -> "FuzzyMatcher":
        return cls([PreparedTitle.prepare(title) for title in titles])

    def __len__(self) -> int:
        return len(self._prepared)

    def score(self, query: str, position: int) -> float:
        """Similarity of ``query`` to one title, 0 when the characters don't line up."""
        needle = _query_chars(query)
        if not needle:
            return 0.0
        return self._score(query.lower().strip(), needle, Counter(needle), self._prepared[position])

    @staticmethod
    def _score(
        lowered_query: str, needle: str, required: Counter, prepared: PreparedTitle
    ) -> float:
        if any(prepared.signature[char] < count for char, count in required.items()):
            return 0.0
        if not _is_subsequence(needle, prepared.lowered):
            return 0.0
        return fuzz.partial_ratio(lowered_query, prepared.lowered)

    def search(
        self,
        query: str,
        limit: int,
        threshold: float = FUZZY_THRESHOLD,
    ) -> List[Tuple[int, float]]:
        """Best ``limit`` positions scoring at least ``threshold``."""
        needle = _query_chars(query)
        if limit <= 0 or not needle:
            return []
        lowered_query = query.lower().strip()
        required = Counter(needle)
        hits = []
        for position, prepared in enumerate(self._prepared):
            value = self._score(lowered_query, needle, required, prepared)
            if value > 0 and value >= threshold:
                hits.append((position, value))
        hits.sort(key=lambda item: (-item[1], item[0]))
        return hits[:limit]
