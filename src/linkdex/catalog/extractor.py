"""Row reconstruction from positioned PDF text and link annotations.

A published spreadsheet rendered to PDF carries no table structure: each
cell is a loose text run with a position, and each hyperlink is an
annotation rectangle. Rows are rebuilt by grouping runs that share a
rounded baseline and binding every link annotation to its nearest line.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from linkdex.catalog.models import (
    CatalogEntry,
    ExtractedRow,
    ExtractionResult,
    LinkAnnotation,
    Page,
    TextRun,
)
from linkdex.config import LINE_BINDING_TOLERANCE, TITLE_MARKER_WORDS
from linkdex.errors import ParseError
from linkdex.url_utils import normalize_link

logger = logging.getLogger(__name__)

WHITESPACE_PATTERN = re.compile(r"\s+")
LAST_UPDATE_PATTERN = re.compile(
    r"Last update:\s*(\d{2})/(\d{2})/(\d{4})\s+(\d{2}):(\d{2})"
)


class _Line:
    __slots__ = ("baseline", "runs", "annotation")

    def __init__(self, baseline: int) -> None:
        self.baseline = baseline
        self.runs: List[TextRun] = []
        self.annotation: Optional[LinkAnnotation] = None

    def text(self) -> str:
        if any(not isinstance(run.text, str) for run in self.runs):
            raise ParseError(f"line at y={self.baseline} has non-text runs")
        ordered = sorted(self.runs, key=lambda run: run.x)
        return " ".join(run.text for run in ordered)


def _baseline(value: float) -> int:
    """Round half up, matching the renderer's integer baselines."""
    if not math.isfinite(value):
        raise ParseError(f"non-finite coordinate {value!r}")
    return math.floor(value + 0.5)


def sanitize_title(title: str, marker_words: Sequence[str] = TITLE_MARKER_WORDS) -> str:
    """Collapse whitespace and strip the leading '!' and marker word."""
    cleaned = WHITESPACE_PATTERN.sub(" ", title)
    cleaned = re.sub(r"^\s*!", "", cleaned)
    for word in marker_words:
        cleaned = re.sub(rf"^\s*{re.escape(word)}\s+", "", cleaned, flags=re.IGNORECASE)
    return cleaned.strip()


def parse_last_update(text: str) -> Optional[int]:
    """Parse a ``Last update: DD/MM/YYYY HH:MM`` stamp into epoch milliseconds (UTC)."""
    match = LAST_UPDATE_PATTERN.search(text)
    if not match:
        return None
    day, month, year, hour, minute = (int(part) for part in match.groups())
    try:
        stamp = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError:
        logger.debug("Ignoring malformed last-update stamp: %s", match.group(0))
        return None
    return int(stamp.timestamp() * 1000)


def _group_lines(page: Page) -> Dict[int, _Line]:
    lines: Dict[int, _Line] = {}
    for run in page.text_runs:
        try:
            baseline = _baseline(run.y)
        except ParseError as exc:
            logger.warning("Page %s: skipping text run %r: %s", page.number, run.text, exc)
            continue
        line = lines.get(baseline)
        if line is None:
            line = lines[baseline] = _Line(baseline)
        line.runs.append(run)
    return lines


def _bind_annotations(
    page: Page, lines: Dict[int, _Line], tolerance: float
) -> None:
    if not lines:
        return
    baselines = sorted(lines)
    for annotation in page.annotations:
        if not annotation.url:
            continue
        try:
            anchor = _baseline(annotation.anchor_y)
        except ParseError as exc:
            logger.warning("Page %s: skipping annotation %s: %s", page.number, annotation.url, exc)
            continue
        closest = min(baselines, key=lambda baseline: abs(baseline - anchor))
        if abs(closest - anchor) < tolerance:
            lines[closest].annotation = annotation


def _build_row(line: _Line) -> Optional[ExtractedRow]:
    title = sanitize_title(line.text())
    if not title:
        return None
    return ExtractedRow(title=title, link=line.annotation.url)


def extract_page_rows(
    page: Page, tolerance: float = LINE_BINDING_TOLERANCE
) -> List[ExtractedRow]:
    """Rebuild the linked rows of one page, top to bottom."""
    lines = _group_lines(page)
    _bind_annotations(page, lines, tolerance)

    rows: List[ExtractedRow] = []
    for baseline in sorted(lines):
        line = lines[baseline]
        if line.annotation is None:
            continue
        try:
            row = _build_row(line)
        except ParseError as exc:
            logger.warning("Page %s: skipping row: %s", page.number, exc)
            continue
        if row is not None:
            rows.append(row)
    return rows


def _scan_document_timestamp(page: Page) -> Optional[int]:
    for line in _group_lines(page).values():
        try:
            text = line.text()
        except ParseError:
            continue
        stamp = parse_last_update(text)
        if stamp is not None:
            return stamp
    return None


def extract_catalog(
    pages: Iterable[Page], tolerance: float = LINE_BINDING_TOLERANCE
) -> ExtractionResult:
    """Extract (title, link) rows in reading order from rendered pages."""
    result = ExtractionResult()
    for index, page in enumerate(pages):
        if index == 0:
            result.document_timestamp = _scan_document_timestamp(page)
        result.rows.extend(extract_page_rows(page, tolerance))

    if not result.rows:
        logger.warning("No linked rows found in document")
    return result


def build_entries(rows: Iterable[ExtractedRow], timestamp: int) -> List[CatalogEntry]:
    """Normalize rows into catalog entries, keeping the last row per link."""
    by_link: Dict[str, CatalogEntry] = {}
    for row in rows:
        if not row.title:
            continue
        normalized = normalize_link(row.link)
        if not normalized.link:
            logger.debug("Dropping row %r with unresolvable link", row.title)
            continue
        # Re-insert so a duplicate moves to its latest reading-order position.
        by_link.pop(normalized.link, None)
        by_link[normalized.link] = CatalogEntry(
            title=row.title,
            link=normalized.link,
            external_id=normalized.external_id,
            timestamp=timestamp,
        )
    return list(by_link.values())


def load_pdf_pages(data: bytes) -> Iterator[Page]:
    """Yield pages of a PDF document as positioned text runs and link annotations."""
    import pymupdf

    try:
        document = pymupdf.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise ParseError(f"Unable to open PDF document: {exc}") from exc

    try:
        for number in range(document.page_count):
            try:
                page = _page_from_pymupdf(document.load_page(number))
            except Exception as exc:
                raise ParseError(f"Unable to read PDF page {number + 1}: {exc}") from exc
            yield page
    finally:
        document.close()


def _page_from_pymupdf(page) -> Page:
    runs: List[TextRun] = []
    for block in page.get_text("dict").get("blocks", []):
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if not text.strip():
                    continue
                x, y = span["origin"]
                runs.append(TextRun(text=text, x=float(x), y=float(y)))

    annotations: List[LinkAnnotation] = []
    for link in page.get_links():
        uri = link.get("uri")
        if not uri:
            continue
        rect = link["from"]
        annotations.append(
            LinkAnnotation(
                url=uri,
                rect=(float(rect.x0), float(rect.y0), float(rect.x1), float(rect.y1)),
            )
        )
    return Page(number=page.number + 1, text_runs=runs, annotations=annotations)
