"""Immutable search index built from one catalog snapshot."""

from __future__ import annotations

import logging
import time
from typing import Sequence, Tuple

from linkdex.catalog.models import CatalogEntry
from linkdex.config import TITLE_BOOST, TOKEN_FUZZY
from linkdex.search.fuzzy import FuzzyMatcher
from linkdex.search.token_index import TokenIndex
from linkdex.search.trie import PrefixTrie

logger = logging.getLogger(__name__)


class SearchIndex:
    """Prefix trie, inverted token index and fuzzy preparation over one corpus.

    Instances are fully built before being handed out and are never mutated
    afterwards; a new catalog always produces a new ``SearchIndex``.
    """

    __slots__ = ("entries", "trie", "tokens", "fuzzy", "built_at")

    def __init__(
        self,
        entries: Tuple[CatalogEntry, ...],
        trie: PrefixTrie,
        tokens: TokenIndex,
        fuzzy: FuzzyMatcher,
    ) -> None:
        self.entries = entries
        self.trie = trie
        self.tokens = tokens
        self.fuzzy = fuzzy
        self.built_at = time.time()

    @classmethod
    def build(
        cls,
        entries: Sequence[CatalogEntry],
        token_fuzzy: float = TOKEN_FUZZY,
        title_boost: float = TITLE_BOOST,
    ) -> "SearchIndex":
        started = time.perf_counter()
        frozen = tuple(entries)
        titles = [entry.title for entry in frozen]

        trie = PrefixTrie()
        for position, title in enumerate(titles):
            trie.insert(title, position)

        index = cls(
            entries=frozen,
            trie=trie,
            tokens=TokenIndex.build(titles, fuzzy=token_fuzzy, boost=title_boost),
            fuzzy=FuzzyMatcher.build(titles),
        )
        logger.debug(
            "Built search index over %d entries in %.3fs",
            len(frozen),
            time.perf_counter() - started,
        )
        return index

    def __len__(self) -> int:
        return len(self.entries)

    def prefix_lookup(self, prefix: str) -> Tuple[CatalogEntry, ...]:
        """Entries whose title starts with ``prefix``, in catalog order."""
        return tuple(self.entries[position] for position in sorted(self.trie.prefix_lookup(prefix)))
