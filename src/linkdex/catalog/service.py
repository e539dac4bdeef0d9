"""Catalog refresh orchestration: staleness, retries, single-flight, index publication."""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from linkdex import config
from linkdex.catalog.extractor import build_entries, extract_catalog, load_pdf_pages
from linkdex.catalog.fetcher import fetch_document
from linkdex.catalog.models import (
    CatalogEntry,
    CatalogSnapshot,
    FileDescriptor,
    FileListingProvider,
    Page,
    RefreshResult,
    RefreshState,
)
from linkdex.catalog.store import CatalogStore, now_ms
from linkdex.config import (
    CACHE_MAX_AGE_SECONDS,
    DOCUMENT_URL,
    FETCH_TIMEOUT,
    LINE_BINDING_TOLERANCE,
    PLACEHOLDER_SENTINEL,
    REFRESH_MAX_ATTEMPTS,
    REFRESH_RETRY_DELAY_SECONDS,
    SEARCH_RESULT_LIMIT,
)
from linkdex.errors import (
    EmptyResultError,
    FetchError,
    LinkdexError,
    ParseError,
    StorageError,
)
from linkdex.search.indexer import SearchIndex
from linkdex.search.ranker import Ranker, SearchHit

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, float], bytes]
PageLoader = Callable[[bytes], Iterable[Page]]


@dataclass(frozen=True)
class CatalogSettings:
    """Immutable refresh configuration for one catalog target."""

    document_url: str = DOCUMENT_URL
    max_age_seconds: float = CACHE_MAX_AGE_SECONDS
    max_attempts: int = REFRESH_MAX_ATTEMPTS
    retry_delay_seconds: float = REFRESH_RETRY_DELAY_SECONDS
    placeholder_sentinel: str = PLACEHOLDER_SENTINEL
    line_tolerance: float = LINE_BINDING_TOLERANCE
    fetch_timeout: float = FETCH_TIMEOUT

    @classmethod
    def from_config(cls, **overrides: Any) -> "CatalogSettings":
        """Settings read from the loaded configuration, with keyword overrides."""
        values = {
            "document_url": config.DOCUMENT_URL,
            "max_age_seconds": config.CACHE_MAX_AGE_SECONDS,
            "max_attempts": config.REFRESH_MAX_ATTEMPTS,
            "retry_delay_seconds": config.REFRESH_RETRY_DELAY_SECONDS,
            "placeholder_sentinel": config.PLACEHOLDER_SENTINEL,
            "line_tolerance": config.LINE_BINDING_TOLERANCE,
            "fetch_timeout": config.FETCH_TIMEOUT,
        }
        values.update(overrides)
        return cls(**values)

    @property
    def max_age_ms(self) -> int:
        return int(self.max_age_seconds * 1000)


def is_placeholder(entries: Sequence[CatalogEntry], sentinel: str) -> bool:
    """True when the document still shows its not-yet-rendered placeholder row.

    The export offers no structural readiness signal, so this relies on the
    placeholder wording and breaks if that text changes upstream.
    """
    return bool(sentinel) and len(entries) == 1 and sentinel in entries[0].title


class CatalogService:
    """Owns the catalog cache and the currently published search index."""

    def __init__(
        self,
        store: Optional[CatalogStore] = None,
        settings: Optional[CatalogSettings] = None,
        fetcher: Fetcher = fetch_document,
        page_loader: PageLoader = load_pdf_pages,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], int] = now_ms,
        file_provider: Optional[FileListingProvider] = None,
    ):
        self.store = store or CatalogStore()
        self.settings = settings or CatalogSettings()
        self._fetcher = fetcher
        self._page_loader = page_loader
        self._sleep = sleep
        self._clock = clock
        self._file_provider = file_provider

        self._inflight: Dict[str, Future] = {}
        self._inflight_lock = threading.Lock()
        self._index_lock = threading.Lock()
        self._index: Optional[SearchIndex] = None
        self._state = RefreshState.IDLE
        self._last_error: Optional[LinkdexError] = None

    @property
    def state(self) -> RefreshState:
        return self._state

    def _set_state(self, state: RefreshState) -> None:
        if state is not self._state:
            logger.debug("Catalog refresh state %s -> %s", self._state.value, state.value)
        self._state = state

    @property
    def index(self) -> Optional[SearchIndex]:
        """The published index, or None before the first build."""
        return self._index

    def _publish(self, entries: Sequence[CatalogEntry]) -> SearchIndex:
        index = SearchIndex.build(entries)
        # Single reference swap; readers never see a partially built index.
        self._index = index
        return index

    def refresh(self, force: bool = False) -> RefreshResult:
        """Refresh the catalog; concurrent callers share one in-flight refresh."""
        key = self.settings.document_url
        with self._inflight_lock:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future

        if not leader:
            logger.debug("Joining in-flight catalog refresh for %s", key)
            return future.result()

        try:
            result = self._refresh(force)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)

    def _refresh(self, force: bool) -> RefreshResult:
        snapshot = self.store.load()
        if (
            not force
            and snapshot.entries
            and not self.store.is_stale(self.settings.max_age_ms)
        ):
            logger.debug("Serving %d cached catalog entries", len(snapshot.entries))
            self._set_state(RefreshState.READY)
            return RefreshResult(
                entries=snapshot.entries,
                from_cache=True,
                timestamp=snapshot.meta.timestamp if snapshot.meta else None,
            )

        fetched = self._fetch_with_retries()
        if fetched is None:
            return self._fallback(snapshot)

        entries, timestamp = fetched
        previous = snapshot.meta
        if (
            not force
            and previous is not None
            and snapshot.entries
            and timestamp <= previous.timestamp
        ):
            logger.info("Catalog unchanged since %s; skipping save", previous.timestamp)
            self.store.touch()
            if self._index is None:
                self._publish(entries)
            self._set_state(RefreshState.READY)
            return RefreshResult(
                entries=entries,
                from_cache=False,
                timestamp=previous.timestamp,
                unchanged=True,
            )

        self._publish(entries)
        self._set_state(RefreshState.READY)
        try:
            meta = self.store.save(entries, timestamp)
        except StorageError as exc:
            logger.error("Catalog save failed; serving uncached entries: %s", exc)
            raise StorageError(str(exc), entries=entries) from exc
        return RefreshResult(entries=entries, from_cache=False, timestamp=meta.timestamp)

    def _fetch_with_retries(self) -> Optional[Tuple[Tuple[CatalogEntry, ...], int]]:
        settings = self.settings
        self._last_error = None
        for attempt in range(1, settings.max_attempts + 1):
            self._set_state(RefreshState.FETCHING)
            try:
                data = self._fetcher(settings.document_url, settings.fetch_timeout)
                extraction = extract_catalog(
                    self._page_loader(data), tolerance=settings.line_tolerance
                )
            except (FetchError, ParseError) as exc:
                self._last_error = exc
                logger.warning(
                    "Catalog fetch attempt %d/%d failed: %s",
                    attempt,
                    settings.max_attempts,
                    exc,
                )
            else:
                timestamp = extraction.document_timestamp
                if timestamp is None:
                    timestamp = self._clock()
                entries = tuple(build_entries(extraction.rows, timestamp))
                if entries and not is_placeholder(entries, settings.placeholder_sentinel):
                    logger.info(
                        "Extracted %d catalog entries on attempt %d", len(entries), attempt
                    )
                    return entries, timestamp
                logger.warning(
                    "Catalog attempt %d/%d returned %s",
                    attempt,
                    settings.max_attempts,
                    "a placeholder" if entries else "no entries",
                )

            if attempt < settings.max_attempts:
                self._set_state(RefreshState.RETRYING)
                self._sleep(settings.retry_delay_seconds)
        return None

    def _fallback(self, snapshot: CatalogSnapshot) -> RefreshResult:
        if snapshot.entries:
            logger.warning(
                "No usable catalog after %d attempts; serving stale cache",
                self.settings.max_attempts,
            )
            self._set_state(RefreshState.READY)
            return RefreshResult(
                entries=snapshot.entries,
                from_cache=True,
                timestamp=snapshot.meta.timestamp if snapshot.meta else None,
                stale=True,
            )
        self._set_state(RefreshState.FAILED)
        raise EmptyResultError(
            f"No catalog entries after {self.settings.max_attempts} attempts"
        ) from self._last_error

    def _ensure_index(self) -> SearchIndex:
        index = self._index
        if index is not None:
            return index
        with self._index_lock:
            if self._index is None:
                self._publish(self.store.load().entries)
            return self._index

    def search(self, query: str, limit: int = SEARCH_RESULT_LIMIT) -> List[SearchHit]:
        """Ranked title search, building the index from cache on first use."""
        return Ranker(self._ensure_index()).search(query, limit)

    def sample(self, count: int, rng: Optional[random.Random] = None) -> List[CatalogEntry]:
        """Random entries for browsing without a query."""
        entries = self._ensure_index().entries
        chooser = rng or random
        return chooser.sample(list(entries), min(count, len(entries)))

    def resolve_files(self, entry: CatalogEntry) -> List[FileDescriptor]:
        """List the downloadable files behind ``entry`` via the configured provider."""
        if self._file_provider is None:
            raise LinkdexError("No file listing provider configured")
        return list(self._file_provider.list_files(entry.link, entry.external_id))
