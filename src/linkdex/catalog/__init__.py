"""Catalog extraction, persistence and refresh with lazy exports."""

from __future__ import annotations

from importlib import import_module
from typing import Dict, Tuple

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "CatalogEntry": ("linkdex.catalog.models", "CatalogEntry"),
    "CatalogSnapshot": ("linkdex.catalog.models", "CatalogSnapshot"),
    "RefreshResult": ("linkdex.catalog.models", "RefreshResult"),
    "RefreshState": ("linkdex.catalog.models", "RefreshState"),
    "SnapshotMeta": ("linkdex.catalog.models", "SnapshotMeta"),
    "CatalogStore": ("linkdex.catalog.store", "CatalogStore"),
    "CatalogService": ("linkdex.catalog.service", "CatalogService"),
    "CatalogSettings": ("linkdex.catalog.service", "CatalogSettings"),
    "extract_catalog": ("linkdex.catalog.extractor", "extract_catalog"),
}


def __getattr__(name: str):
    if name not in _EXPORTS:
        raise AttributeError(f"module 'linkdex.catalog' has no attribute {name!r}")
    module_name, attr_name = _EXPORTS[name]
    module = import_module(module_name)
    return getattr(module, attr_name)


__all__ = sorted(_EXPORTS.keys())
