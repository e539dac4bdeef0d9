"""Shared URL sanitization and catalog link normalization helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional, Sequence
from urllib.parse import unquote, urlsplit

from linkdex.config import EXTERNAL_ID_SEGMENTS, REDIRECT_PREFIXES

HTTP_URL_SCHEMES: FrozenSet[str] = frozenset({"http", "https"})
REDIRECT_QUERY_SEPARATOR = "&"
EXTERNAL_ID_TERMINATOR = "#"


@dataclass(frozen=True)
class NormalizedLink:
    """A catalog link with its redirect wrapper removed."""

    link: str
    external_id: Optional[str] = None


def sanitize_url(url: str) -> str:
    """Remove shell-escaping artifacts and surrounding whitespace."""
    if not url:
        return ""
    return str(url).replace("\\", "").strip()


def is_http_url(url: str) -> bool:
    """Return True when a target is a valid HTTP(S) URL."""
    sanitized = sanitize_url(url)
    if not sanitized:
        return False
    parsed = urlsplit(sanitized)
    return parsed.scheme.lower() in HTTP_URL_SCHEMES and bool(parsed.netloc)


def strip_redirect_wrapper(
    url: str, prefixes: Sequence[str] = REDIRECT_PREFIXES
) -> str:
    """Drop a known redirect prefix and the tracking parameters following it."""
    for prefix in prefixes:
        if prefix and url.startswith(prefix):
            unwrapped = url[len(prefix) :]
            return unwrapped.split(REDIRECT_QUERY_SEPARATOR, 1)[0]
    return url


def _external_id_pattern(segments: Sequence[str]) -> Optional[re.Pattern[str]]:
    names = [re.escape(segment) for segment in segments if segment]
    if not names:
        return None
    return re.compile(
        rf"(?:{'|'.join(names)})/([^{re.escape(EXTERNAL_ID_TERMINATOR)}]+)"
    )


def extract_external_id(
    link: str, segments: Sequence[str] = EXTERNAL_ID_SEGMENTS
) -> Optional[str]:
    """Return the opaque token following a known path segment, if any."""
    pattern = _external_id_pattern(segments)
    if pattern is None or not link:
        return None
    match = pattern.search(link)
    return match.group(1) if match else None


def normalize_link(
    raw: object,
    *,
    prefixes: Sequence[str] = REDIRECT_PREFIXES,
    segments: Sequence[str] = EXTERNAL_ID_SEGMENTS,
) -> NormalizedLink:
    """Normalize a raw annotation URL into a catalog link.

    Never raises: unrecognized input is returned decoded with no external id,
    and non-string input normalizes to an empty link.
    """
    if not isinstance(raw, str):
        return NormalizedLink(link="")
    sanitized = sanitize_url(raw)
    if not sanitized:
        return NormalizedLink(link="")

    link = unquote(strip_redirect_wrapper(sanitized, prefixes)).strip()
    return NormalizedLink(link=link, external_id=extract_external_id(link, segments))
