"""Title search with lazy exports."""

from __future__ import annotations

from importlib import import_module
from typing import Dict, Tuple

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "PrefixTrie": ("linkdex.search.trie", "PrefixTrie"),
    "Ranker": ("linkdex.search.ranker", "Ranker"),
    "SearchHit": ("linkdex.search.ranker", "SearchHit"),
    "SearchIndex": ("linkdex.search.indexer", "SearchIndex"),
}


def __getattr__(name: str):
    if name not in _EXPORTS:
        raise AttributeError(f"module 'linkdex.search' has no attribute {name!r}")
    module_name, attr_name = _EXPORTS[name]
    module = import_module(module_name)
    return getattr(module, attr_name)


__all__ = sorted(_EXPORTS.keys())
