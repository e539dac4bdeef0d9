"""Tests for row reconstruction from positioned text and link annotations."""

import math
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from linkdex.catalog.extractor import (
    build_entries,
    extract_catalog,
    extract_page_rows,
    load_pdf_pages,
    parse_last_update,
    sanitize_title,
)
from linkdex.catalog.models import ExtractedRow, LinkAnnotation, Page, TextRun
from linkdex.errors import ParseError


def _link(url, y, height=12.0):
    return LinkAnnotation(url=url, rect=(10.0, y - height, 300.0, y))


def test_rows_follow_reading_order():
    page = Page(
        number=1,
        text_runs=[
            TextRun("Second", x=40, y=200.2),
            TextRun("Row", x=120, y=199.8),
            TextRun("Title", x=90, y=100),
            TextRun("First", x=40, y=100),
        ],
        annotations=[
            _link("https://example.com/2", 202),
            _link("https://example.com/1", 103),
        ],
    )

    rows = extract_page_rows(page)

    assert rows == [
        ExtractedRow(title="First Title", link="https://example.com/1"),
        ExtractedRow(title="Second Row", link="https://example.com/2"),
    ]


def test_pages_are_emitted_in_document_order():
    pages = [
        Page(1, [TextRun("Alpha", 10, 50)], [_link("https://a.example", 50)]),
        Page(2, [TextRun("Beta", 10, 20)], [_link("https://b.example", 20)]),
    ]
    result = extract_catalog(pages)
    assert [row.title for row in result.rows] == ["Alpha", "Beta"]


def test_annotation_beyond_tolerance_is_not_bound():
    page = Page(
        number=1,
        text_runs=[TextRun("Near", 10, 100), TextRun("Far", 10, 300)],
        annotations=[
            _link("https://near.example", 119),
            _link("https://far.example", 321),
        ],
    )
    rows = extract_page_rows(page)
    assert [row.title for row in rows] == ["Near"]


def test_annotation_exactly_at_tolerance_is_dropped():
    page = Page(
        number=1,
        text_runs=[TextRun("Edge", 10, 100)],
        annotations=[_link("https://edge.example", 120)],
    )
    assert extract_page_rows(page) == []


def test_annotation_binds_to_nearest_line():
    page = Page(
        number=1,
        text_runs=[TextRun("Upper", 10, 100), TextRun("Lower", 10, 115)],
        annotations=[_link("https://lower.example", 112)],
    )
    assert extract_page_rows(page) == [
        ExtractedRow(title="Lower", link="https://lower.example")
    ]


def test_lines_without_annotations_are_skipped():
    page = Page(
        number=1,
        text_runs=[TextRun("Header", 10, 20), TextRun("Linked", 10, 60)],
        annotations=[_link("https://x.example", 60)],
    )
    assert [row.title for row in extract_page_rows(page)] == ["Linked"]


def test_annotations_without_url_are_ignored():
    page = Page(
        number=1,
        text_runs=[TextRun("Row", 10, 60)],
        annotations=[LinkAnnotation(url="", rect=(0, 50, 10, 60))],
    )
    assert extract_page_rows(page) == []


def test_row_with_empty_title_is_dropped():
    page = Page(
        number=1,
        text_runs=[TextRun("!", 10, 60), TextRun("  ", 30, 60)],
        annotations=[_link("https://x.example", 60)],
    )
    assert extract_page_rows(page) == []


def test_unreconcilable_row_is_skipped_without_aborting_page():
    page = Page(
        number=1,
        text_runs=[
            TextRun(None, 10, 40),
            TextRun("Good", 10, 80),
            TextRun("Lost", 10, math.nan),
        ],
        annotations=[_link("https://bad.example", 40), _link("https://good.example", 80)],
    )
    rows = extract_page_rows(page)
    assert rows == [ExtractedRow(title="Good", link="https://good.example")]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  Some   spaced\ttitle ", "Some spaced title"),
        ("!Bang title", "Bang title"),
        ("MEGA Archive Name", "Archive Name"),
        ("mega   archive", "archive"),
        ("! MEGA Combined", "Combined"),
        ("MEGAHIT", "MEGAHIT"),
    ],
)
def test_sanitize_title(raw, expected):
    assert sanitize_title(raw) == expected


def test_document_timestamp_from_first_page():
    first = Page(
        1,
        [TextRun("Last update:", 10, 10), TextRun("05/03/2024 14:30", 80, 10), TextRun("Row", 10, 50)],
        [_link("https://row.example", 50)],
    )
    result = extract_catalog([first])

    expected = datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)
    assert result.document_timestamp == int(expected.timestamp() * 1000)
    # The stamp scan does not consume the first page's rows.
    assert [row.title for row in result.rows] == ["Row"]


def test_document_timestamp_only_scans_first_page():
    pages = [
        Page(1, [TextRun("Row", 10, 50)], [_link("https://row.example", 50)]),
        Page(2, [TextRun("Last update: 01/01/2024 00:00", 10, 10)], []),
    ]
    assert extract_catalog(pages).document_timestamp is None


def test_zero_pages_yield_empty_result():
    result = extract_catalog([])
    assert result.rows == []
    assert result.document_timestamp is None


def test_parse_last_update_rejects_impossible_dates():
    assert parse_last_update("Last update: 31/02/2024 10:00") is None
    assert parse_last_update("no stamp here") is None


def test_build_entries_normalizes_and_collapses_duplicates():
    rows = [
        ExtractedRow("Old Title", "https://www.google.com/url?q=https://mega.nz/folder/AAA%23k&sa=D"),
        ExtractedRow("Other", "https://other.example"),
        ExtractedRow("New Title", "https://mega.nz/folder/AAA#k"),
        ExtractedRow("No link", ""),
    ]
    entries = build_entries(rows, timestamp=1234)

    assert [(e.title, e.link, e.external_id) for e in entries] == [
        ("Other", "https://other.example", None),
        ("New Title", "https://mega.nz/folder/AAA#k", "AAA"),
    ]
    assert all(entry.timestamp == 1234 and entry.status == "active" for entry in entries)


def test_load_pdf_pages_reads_text_and_links():
    pymupdf = pytest.importorskip("pymupdf")

    doc = pymupdf.open()
    page = doc.new_page()
    page.insert_text((72, 100), "MEGA Apple Pie")
    page.insert_link(
        {
            "kind": pymupdf.LINK_URI,
            "from": pymupdf.Rect(72, 88, 250, 104),
            "uri": "https://mega.nz/folder/PIE1#key",
        }
    )
    data = doc.tobytes()
    doc.close()

    result = extract_catalog(load_pdf_pages(data))

    assert [(row.title, row.link) for row in result.rows] == [
        ("Apple Pie", "https://mega.nz/folder/PIE1#key")
    ]


def test_load_pdf_pages_rejects_garbage():
    with pytest.raises(ParseError):
        list(load_pdf_pages(b"definitely not a pdf"))


def test_load_pdf_pages_wraps_page_read_failures():
    pymupdf = pytest.importorskip("pymupdf")
    doc = pymupdf.open()
    doc.new_page()
    doc.new_page()
    data = doc.tobytes()
    doc.close()

    with patch(
        "linkdex.catalog.extractor._page_from_pymupdf",
        side_effect=[Page(number=1), RuntimeError("mupdf page error")],
    ):
        pages = load_pdf_pages(data)
        assert next(pages).number == 1
        with pytest.raises(ParseError) as excinfo:
            next(pages)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
