"""Exception hierarchy for catalog refresh, extraction and storage."""

from __future__ import annotations

from typing import Any, Optional, Sequence


class LinkdexError(Exception):
    """Base error for linkdex runtime failures."""


class FetchError(LinkdexError):
    """Raised when the source document cannot be downloaded."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(LinkdexError):
    """Raised when a document or a single row cannot be reconciled."""


class EmptyResultError(LinkdexError):
    """Raised when no usable entries remain after retries and no cache exists."""


class StorageError(LinkdexError):
    """Raised when the catalog database cannot be read or written.

    ``entries`` carries the freshly extracted catalog when a save fails, so
    callers can keep serving it for the current session.
    """

    def __init__(self, message: str, *, entries: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.entries = list(entries)
