#!/usr/bin/env python3
"""
Catalog Client - query a vendor's authoritative catalog for variant data

Two layers:
- CatalogClient subclasses are thin adapters: one lookup per fetch() (a single
  request, or a search followed by the page it points to), raising on
  transport failure, returning CatalogResult(found=False) when the catalog
  simply does not list the term.
- CatalogSession wraps an adapter for one pipeline run: run-scoped cache,
  retries with backoff, a cap on concurrent external calls and error counting.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from step1_extract.models import ExtractedLineItem

from .models import CatalogResult, RunStatistics

logger = logging.getLogger(__name__)

# Statuses that mean "try again later" rather than "not listed"
RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


class CatalogRequestError(Exception):
    """The external catalog call failed (network, timeout, HTTP error, bad payload)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def parse_price(value: Any) -> Optional[float]:
    """'99.00', '$1,099.00', 99 -> float; blank or unparsable -> None"""
    if value in (None, ''):
        return None
    try:
        return float(str(value).replace('$', '').replace(',', ''))
    except ValueError:
        return None


def clean_text(value: Any) -> str:
    return '' if value is None else str(value).strip()


def dedupe_terms(terms: Iterable[str]) -> List[str]:
    """Drop blanks and case-insensitive duplicates, keeping first-seen order"""
    seen = set()
    result = []
    for term in terms:
        term = ' '.join((term or '').split())
        if term and term.upper() not in seen:
            seen.add(term.upper())
            result.append(term)
    return result


class CatalogClient:
    """Base adapter for a vendor catalog (REST API or scraped page)"""

    vendor_code = ''

    def __init__(self, timeout: float = 15, headers: Optional[Dict[str, str]] = None,
                 brand_aliases: Optional[Dict[str, str]] = None,
                 http_session: Optional[requests.Session] = None):
        """
        Args:
            timeout: Seconds allowed for each external request
            headers: Default request headers
            brand_aliases: Brand abbreviation -> full brand name
            http_session: Shared requests session (one is created when omitted)
        """
        self.timeout = timeout
        self.brand_aliases = {k.upper(): v for k, v in (brand_aliases or {}).items()}
        self.http = http_session or requests.Session()
        if headers:
            self.http.headers.update(headers)

    def fetch(self, search_term: str) -> CatalogResult:
        """
        Issue one external query

        Raises:
            CatalogRequestError / requests.RequestException on transport failure
        """
        raise NotImplementedError

    def search_terms(self, item: ExtractedLineItem) -> List[str]:
        """
        Ordered search-term variations for an item

        Model alone, then brand + model, then the expanded brand name + model
        when the brand is a known abbreviation.
        """
        terms = [item.model]
        if item.brand:
            terms.append(f"{item.brand} {item.model}")
            expanded = self.brand_aliases.get(item.brand.upper())
            if expanded:
                terms.append(f"{expanded} {item.model}")
        return dedupe_terms(terms)

    def _request(self, method: str, url: str, **kwargs) -> Optional[requests.Response]:
        """
        Send a request and sort the response into success / not listed / failure

        Returns:
            Response for 2xx, None for 404

        Raises:
            CatalogRequestError for any other status
        """
        response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        if response.status_code == 404:
            return None
        if response.status_code in RETRYABLE_STATUS or not response.ok:
            raise CatalogRequestError(f"HTTP {response.status_code} from {url}", response.status_code)
        return response


class StaticCatalogClient(CatalogClient):
    """
    In-memory catalog: search term -> CatalogResult

    Used as the test double and for offline runs. Lookups are
    case-insensitive; `calls` records every fetch.
    """

    vendor_code = 'static'

    def __init__(self, results: Optional[Dict[str, CatalogResult]] = None,
                 brand_aliases: Optional[Dict[str, str]] = None,
                 on_fetch: Optional[Callable[[str], None]] = None):
        super().__init__(timeout=0, brand_aliases=brand_aliases, http_session=requests.Session())
        self.results = {k.upper(): v for k, v in (results or {}).items()}
        self.on_fetch = on_fetch
        self.calls: List[str] = []
        self._calls_lock = threading.Lock()

    def fetch(self, search_term: str) -> CatalogResult:
        with self._calls_lock:
            self.calls.append(search_term)
        if self.on_fetch is not None:
            self.on_fetch(search_term)
        result = self.results.get(search_term.upper())
        if result is None:
            return CatalogResult.not_found(search_term, 'Not listed in static catalog')
        return result


class CatalogCache:
    """
    Run-scoped term -> CatalogResult map with case-insensitive keys

    The map is guarded by a lock; per-key locks make concurrent lookups of the
    same term wait for the first one instead of issuing a second call.
    """

    def __init__(self):
        self._entries: Dict[str, CatalogResult] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(search_term: str) -> str:
        return ' '.join(search_term.split()).upper()

    def get(self, search_term: str) -> Optional[CatalogResult]:
        with self._lock:
            return self._entries.get(self.key(search_term))

    def put(self, search_term: str, result: CatalogResult):
        with self._lock:
            self._entries[self.key(search_term)] = result

    def key_lock(self, search_term: str) -> threading.Lock:
        key = self.key(search_term)
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def __contains__(self, search_term: str) -> bool:
        return self.get(search_term) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CatalogSession:
    """One run's view of a catalog client"""

    def __init__(self, client: CatalogClient, statistics: Optional[RunStatistics] = None,
                 cache: Optional[CatalogCache] = None, max_retries: int = 3,
                 retry_delay: float = 1.0, max_concurrent_requests: int = 5):
        """
        Args:
            client: Vendor catalog adapter
            statistics: Run statistics receiving api_errors / cache_hits
            cache: Cache to use (a fresh run-scoped cache when omitted)
            max_retries: Attempts per term before giving up
            retry_delay: Backoff base in seconds (delay = retry_delay * attempt)
            max_concurrent_requests: Cap on simultaneous external calls
        """
        self.client = client
        self.statistics = statistics or RunStatistics()
        self.cache = cache if cache is not None else CatalogCache()
        self.max_retries = max(1, int(max_retries))
        self.retry_delay = retry_delay
        self._throttle = threading.BoundedSemaphore(max(1, int(max_concurrent_requests)))

    def lookup(self, search_term: str) -> CatalogResult:
        """
        Cached lookup of one term

        A cache hit never re-issues the external call. A failure after the
        last retry yields found=False with the error and counts once in
        statistics.api_errors.
        """
        with self.cache.key_lock(search_term):
            cached = self.cache.get(search_term)
            if cached is not None:
                logger.debug(f"Cache hit: {search_term}")
                self.statistics.record_cache_hit()
                return cached

            with self._throttle:
                result = self._fetch_with_retry(search_term)
            self.cache.put(search_term, result)
            return result

    def _fetch_with_retry(self, search_term: str) -> CatalogResult:
        last_error = ''
        for attempt in range(1, self.max_retries + 1):
            try:
                return self.client.fetch(search_term)
            except (CatalogRequestError, requests.RequestException) as e:
                last_error = str(e) or e.__class__.__name__
                if attempt < self.max_retries:
                    logger.warning(f"Catalog lookup '{search_term}' failed (attempt {attempt}/{self.max_retries}): {last_error}")
                    time.sleep(self.retry_delay * attempt)

        logger.error(f"Catalog lookup '{search_term}' failed after {self.max_retries} attempts: {last_error}")
        self.statistics.record_api_error()
        return CatalogResult.failure(
            search_term, last_error,
            reason=f"Catalog request failed after {self.max_retries} attempts: {last_error}",
        )

    def find(self, search_terms: Iterable[str]) -> CatalogResult:
        """
        Try search-term variations in order

        Stops at the first found result, or at the first lookup failure
        (the source is unreachable, further variations would only add errors).

        Returns:
            The first found result, else the last result seen
        """
        result = None
        for term in dedupe_terms(search_terms):
            result = self.lookup(term)
            if result.found or result.failed:
                return result
        if result is None:
            return CatalogResult.not_found('', 'No search terms available for item')
        return result
