"""HTTP download of the published catalog document."""

from __future__ import annotations

import logging
import time

import requests

from linkdex.config import FETCH_TIMEOUT, USER_AGENT
from linkdex.errors import FetchError
from linkdex.url_utils import is_http_url, sanitize_url

logger = logging.getLogger(__name__)


def fetch_document(
    url: str,
    timeout: float = FETCH_TIMEOUT,
    session: requests.Session | None = None,
) -> bytes:
    """Download the raw document bytes, raising ``FetchError`` on any failure."""
    requested_url = sanitize_url(url)
    if not is_http_url(requested_url):
        raise FetchError(f"Document URL is not an HTTP(S) URL: {url!r}")

    http = session or requests
    started = time.perf_counter()
    try:
        response = http.get(
            requested_url,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch document: {exc}") from exc

    if not response.ok:
        raise FetchError(
            f"Failed to fetch document: HTTP {response.status_code}",
            status_code=response.status_code,
        )

    content = response.content
    logger.debug(
        "Fetched %s (%d bytes) in %.2fs",
        requested_url,
        len(content),
        time.perf_counter() - started,
    )
    return content
