"""Inverted token index with exact, prefix and edit-distance term matching."""

from __future__ import annotations

import bisect
import math
from collections import defaultdict
from typing import Dict, List, Sequence

from rapidfuzz.distance import Levenshtein

from linkdex.config import TITLE_BOOST, TOKEN_FUZZY

EXACT_WEIGHT = 1.0
PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45
MAX_FUZZY_DISTANCE = 6
BM25_K1 = 1.2
BM25_B = 0.7


def tokenize(text: str) -> List[str]:
    """Lower-case whitespace tokenization shared by indexing and querying."""
    return text.lower().split()


class TokenIndex:
    """Maps lower-cased tokens to the catalog positions containing them.

    Scores are BM25-weighted per matched token; prefix and fuzzy matches are
    down-weighted relative to exact hits, and every hit is multiplied by the
    title field boost.
    """

    def __init__(
        self,
        fuzzy: float = TOKEN_FUZZY,
        boost: float = TITLE_BOOST,
        prefix: bool = True,
    ) -> None:
        self.fuzzy = fuzzy
        self.boost = boost
        self.prefix = prefix
        self._postings: Dict[str, Dict[int, int]] = defaultdict(dict)
        self._doc_lengths: Dict[int, int] = {}
        self._sorted_tokens: List[str] = []

    @classmethod
    def build(cls, titles: Sequence[str], **options) -> "TokenIndex":
        index = cls(**options)
        for position, title in enumerate(titles):
            index._add(position, title)
        index._sorted_tokens = sorted(index._postings)
        return index

    def _add(self, position: int, text: str) -> None:
        tokens = tokenize(text)
        self._doc_lengths[position] = len(tokens)
        for token in tokens:
            postings = self._postings[token]
            postings[position] = postings.get(position, 0) + 1

    def __len__(self) -> int:
        return len(self._doc_lengths)

    def lookup(self, token: str) -> frozenset[int]:
        """Positions containing exactly ``token``."""
        return frozenset(self._postings.get(token.lower(), ()))

    def max_distance(self, term: str) -> int:
        if self.fuzzy <= 0:
            return 0
        if self.fuzzy >= 1:
            return int(self.fuzzy)
        return min(MAX_FUZZY_DISTANCE, round(len(term) * self.fuzzy))

    def _prefix_tokens(self, term: str) -> List[str]:
        start = bisect.bisect_left(self._sorted_tokens, term)
        matches = []
        for token in self._sorted_tokens[start:]:
            if not token.startswith(term):
                break
            matches.append(token)
        return matches

    def match_term(self, term: str) -> Dict[str, float]:
        """Return indexed tokens matching ``term`` with their match weights."""
        matches: Dict[str, float] = {}
        if term in self._postings:
            matches[term] = EXACT_WEIGHT

        if self.prefix:
            for token in self._prefix_tokens(term):
                if token == term:
                    continue
                extra = len(token) - len(term)
                weight = PREFIX_WEIGHT * len(term) / (len(term) + 0.3 * extra)
                matches[token] = max(matches.get(token, 0.0), weight)

        max_distance = self.max_distance(term)
        if max_distance > 0:
            for token in self._sorted_tokens:
                if abs(len(token) - len(term)) > max_distance or token == term:
                    continue
                distance = Levenshtein.distance(term, token, score_cutoff=max_distance)
                if distance > max_distance:
                    continue
                weight = FUZZY_WEIGHT * len(term) / (len(term) + distance)
                matches[token] = max(matches.get(token, 0.0), weight)
        return matches

    def _idf(self, token: str) -> float:
        doc_freq = len(self._postings[token])
        total = len(self._doc_lengths)
        return math.log(1 + (total - doc_freq + 0.5) / (doc_freq + 0.5))

    def _term_frequency(self, freq: int, position: int, avg_length: float) -> float:
        length_ratio = self._doc_lengths[position] / avg_length if avg_length else 1.0
        norm = BM25_K1 * (1 - BM25_B + BM25_B * length_ratio)
        return freq * (BM25_K1 + 1) / (freq + norm)

    def search(self, query: str) -> Dict[int, float]:
        """Score positions for ``query``; terms are combined with OR."""
        scores: Dict[int, float] = defaultdict(float)
        if not self._doc_lengths:
            return {}
        avg_length = sum(self._doc_lengths.values()) / len(self._doc_lengths)

        for term in tokenize(query):
            for token, weight in self.match_term(term).items():
                idf = self._idf(token)
                for position, freq in self._postings[token].items():
                    tf = self._term_frequency(freq, position, avg_length)
                    scores[position] += self.boost * weight * idf * tf
        return dict(scores)
