"""Hybrid ranking over a published ``SearchIndex``.

Two independent strategies are fused per entry:

* the inverted token index, which gives typo tolerance and partial-word
  recall, and
* the character-level fuzzy pass, which recovers hits that cross word
  boundaries.

Literal substring and prefix bonuses are added last so that obvious matches
always outrank fuzzy-only noise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from linkdex.config import FUZZY_THRESHOLD, SEARCH_RESULT_LIMIT
from linkdex.search.indexer import SearchIndex

TOKEN_SCORE_WEIGHT = 150
FUZZY_PRESENCE_BONUS = 500
CONTAINS_BONUS = 1000
STARTS_WITH_BONUS = 2000


@dataclass(frozen=True)
class SearchHit:
    title: str
    link: str
    score: float


def literal_boost(title: str, query: str) -> int:
    """Bonus for case-insensitive substring and prefix matches."""
    lowered_title = title.lower()
    lowered_query = query.lower()
    boost = 0
    if lowered_query in lowered_title:
        boost += CONTAINS_BONUS
    if lowered_title.startswith(lowered_query):
        boost += STARTS_WITH_BONUS
    return boost


class Ranker:
    def __init__(self, index: SearchIndex, fuzzy_threshold: float = FUZZY_THRESHOLD):
        self.index = index
        self.fuzzy_threshold = fuzzy_threshold

    def search(self, query: str, limit: int = SEARCH_RESULT_LIMIT) -> List[SearchHit]:
        """Ranked hits for ``query``, at most ``limit`` of them."""
        if not query or not query.strip() or limit <= 0:
            return []
        index = self.index
        if not len(index):
            return []

        token_scores = index.tokens.search(query)
        fuzzy_scores = dict(
            index.fuzzy.search(query, limit=limit * 2, threshold=self.fuzzy_threshold)
        )

        # Fuse by link; positions are unique per link within one snapshot.
        fused: Dict[str, float] = {}
        first_position: Dict[str, int] = {}
        for position in set(token_scores) | set(fuzzy_scores):
            entry = index.entries[position]
            score = literal_boost(entry.title, query)
            if position in token_scores:
                score += token_scores[position] * TOKEN_SCORE_WEIGHT
            if position in fuzzy_scores:
                score += fuzzy_scores[position] + FUZZY_PRESENCE_BONUS
            fused[entry.link] = max(score, fused.get(entry.link, score))
            first_position[entry.link] = min(
                position, first_position.get(entry.link, position)
            )

        ordered = sorted(fused, key=lambda link: (-fused[link], first_position[link]))
        return [
            SearchHit(
                title=index.entries[first_position[link]].title,
                link=link,
                score=fused[link],
            )
            for link in ordered[:limit]
        ]
