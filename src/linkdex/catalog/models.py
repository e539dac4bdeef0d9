"""Catalog data models shared by extraction, storage and refresh."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

ENTRY_STATUS_ACTIVE = "active"


@dataclass(frozen=True)
class TextRun:
    """A positioned text fragment in top-left page coordinates."""

    text: str
    x: float
    y: float


@dataclass(frozen=True)
class LinkAnnotation:
    """A hyperlink annotation and its bounding rectangle (x0, y0, x1, y1)."""

    url: str
    rect: Tuple[float, float, float, float]

    @property
    def anchor_y(self) -> float:
        """Vertical anchor used for line binding: the rectangle's bottom edge."""
        return self.rect[3]


@dataclass
class Page:
    """One rendered page: its text runs and hyperlink annotations."""

    number: int
    text_runs: List[TextRun] = field(default_factory=list)
    annotations: List[LinkAnnotation] = field(default_factory=list)


@dataclass(frozen=True)
class ExtractedRow:
    """A reconstructed table row before link normalization."""

    title: str
    link: str


@dataclass
class ExtractionResult:
    """Rows in reading order plus the document's own freshness stamp."""

    rows: List[ExtractedRow] = field(default_factory=list)
    document_timestamp: Optional[int] = None


@dataclass(frozen=True)
class CatalogEntry:
    """One normalized title/link record."""

    title: str
    link: str
    external_id: Optional[str]
    timestamp: int
    status: str = ENTRY_STATUS_ACTIVE


@dataclass(frozen=True)
class SnapshotMeta:
    """Metadata about the persisted snapshot.

    ``timestamp`` is the catalog freshness stamp passed to ``save``;
    ``checked_at`` is the wall-clock time the snapshot was last confirmed.
    """

    timestamp: int
    count: int
    checked_at: int


@dataclass(frozen=True)
class CatalogSnapshot:
    schema_version: int
    entries: Tuple[CatalogEntry, ...] = ()
    meta: Optional[SnapshotMeta] = None


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of ``CatalogService.refresh``."""

    entries: Tuple[CatalogEntry, ...]
    from_cache: bool
    timestamp: Optional[int]
    unchanged: bool = False
    stale: bool = False


class RefreshState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RETRYING = "retrying"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class FileDescriptor:
    """A downloadable file as reported by a file-listing provider."""

    name: str
    url: str
    size: Optional[int] = None


class FileListingProvider(Protocol):
    """External capability that lists the files behind a catalog link."""

    def list_files(
        self, link: str, external_id: Optional[str]
    ) -> Sequence[FileDescriptor]: ...
