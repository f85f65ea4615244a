"""
Async Wikidata client for concurrent entity, property and SPARQL lookups.

Blocking `requests` calls run in a small thread pool; a semaphore bounds the
number of simultaneous requests and a token bucket keeps us under the
configured requests-per-second budget. Rate-limit (429), 5xx and connection
errors are retried with exponential backoff and jitter. Once retries are
exhausted the lookup resolves to None (or an empty list for queries); callers
treat that as "unknown", never as fatal.
"""

import asyncio
import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests

from wikitree.common.config import WikidataSettings

from .constants import ENTITY_URI_PREFIX
from .entities import Entity, PropertyInfo
from .entity_cache import EntityCache
from .queries import QueryDescriptor

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class TransientFetchError(Exception):
    """A failure worth retrying (rate limiting, server hiccup, network)."""


async def _async_sleep_with_backoff(attempt: int, base_delay: float = 0.5, max_delay: float = 16.0) -> None:
    """Async sleep helper for exponential backoff with jitter."""
    delay = min(max_delay, base_delay * (2**attempt))
    delay *= 1 + random.uniform(-0.2, 0.2)
    if delay > 0:
        await asyncio.sleep(delay)


class AsyncRateLimiter:
    """
    Async rate limiter using a token bucket.

    Allows bursts up to `burst` requests, refilling at `rate` tokens per second.
    """

    def __init__(self, rate: float = 10.0, burst: Optional[int] = None):
        self.rate = float(rate)
        self.burst = int(burst) if burst is not None else max(1, int(rate))
        self.tokens = float(self.burst)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self, n: int = 1) -> None:
        """Acquire n tokens, waiting if necessary."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update
            self.tokens = min(self.burst, self.tokens + elapsed * self.rate)
            self.last_update = now

            if self.tokens < n:
                wait_time = (n - self.tokens) / self.rate
                await asyncio.sleep(wait_time)
                self.tokens = 0.0
                self.last_update = time.monotonic()
            else:
                self.tokens -= n


def qid_from_binding(binding: Dict[str, Any], var: str = "i") -> Optional[str]:
    """Extract a bare id from a SPARQL JSON binding (`http://www.wikidata.org/entity/Q5` -> `Q5`)."""
    value = (binding.get(var) or {}).get("value")
    if not isinstance(value, str):
        return None
    if value.startswith(ENTITY_URI_PREFIX):
        return value[len(ENTITY_URI_PREFIX):]
    return value


class AsyncWikidataClient:
    """Memoized, rate-limited access to Wikidata items, properties and SPARQL."""

    def __init__(
        self,
        settings: Optional[WikidataSettings] = None,
        cache: Optional[EntityCache] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Endpoint, concurrency and retry settings
            cache: Shared memo cache; a private one is created if omitted
            session: Optional pre-configured requests session (used by tests)
        """
        self.settings = settings or WikidataSettings()
        self.cache = cache if cache is not None else EntityCache()
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": self.settings.user_agent, "Accept": "application/json"}
        )
        self.max_retries = max(1, int(self.settings.max_retries))
        self.executor = ThreadPoolExecutor(max_workers=self.settings.max_concurrency)
        self.rate_limiter = AsyncRateLimiter(rate=self.settings.rate_limit)
        self._semaphore: Optional[asyncio.Semaphore] = None
        logger.info(
            "Initialized async Wikidata client (max_concurrency=%d, max_retries=%d, rate_limit=%.1f req/sec)",
            self.settings.max_concurrency,
            self.max_retries,
            self.settings.rate_limit,
        )

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # Created lazily so the semaphore binds to the running loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.settings.max_concurrency)
        return self._semaphore

    def _http_get(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        """Blocking GET returning decoded JSON. Runs inside the executor."""
        try:
            response = self.session.get(url, params=params, timeout=self.settings.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
            raise TransientFetchError(str(exc)) from exc
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientFetchError(f"HTTP {response.status_code} for {url}")
        response.raise_for_status()
        return response.json()

    async def _get_json(self, url: str, what: str, params: Optional[Dict[str, str]] = None) -> Optional[Any]:
        """GET with bounded concurrency, rate limiting and retries. None on failure."""
        async with self.semaphore:
            loop = asyncio.get_running_loop()
            for attempt in range(self.max_retries):
                await self.rate_limiter.acquire(1)
                try:
                    return await loop.run_in_executor(self.executor, self._http_get, url, params)
                except TransientFetchError as exc:
                    if attempt + 1 >= self.max_retries:
                        logger.error(
                            "Giving up on %s after %d attempts: %s", what, self.max_retries, exc
                        )
                        return None
                    logger.warning(
                        "Transient error fetching %s (attempt %d/%d): %s; retrying...",
                        what,
                        attempt + 1,
                        self.max_retries,
                        exc,
                    )
                except requests.exceptions.RequestException as exc:
                    logger.warning("Request for %s failed: %s", what, exc)
                    return None
                except ValueError as exc:
                    logger.warning("Invalid JSON in response for %s: %s", what, exc)
                    return None
                await _async_sleep_with_backoff(
                    attempt, base_delay=self.settings.base_delay, max_delay=self.settings.max_delay
                )
        return None

    async def _load_entity(self, qid: str) -> Optional[Entity]:
        payload = await self._get_json(f"{self.settings.rest_url}/entities/items/{qid}", f"item {qid}")
        if not isinstance(payload, dict):
            return None
        return Entity.from_json(qid, payload, self.settings.language)

    async def _load_property(self, pid: str) -> Optional[PropertyInfo]:
        payload = await self._get_json(
            f"{self.settings.rest_url}/entities/properties/{pid}", f"property {pid}"
        )
        if not isinstance(payload, dict):
            return None
        return PropertyInfo.from_json(pid, payload, self.settings.language)

    async def fetch_entity(self, qid: str) -> Optional[Entity]:
        """Fetch (or reuse) the item for `qid`. None if it could not be resolved."""
        return await self.cache.entities.get_or_fetch(qid, self._load_entity)

    async def fetch_property(self, pid: str) -> Optional[PropertyInfo]:
        """Fetch (or reuse) the property for `pid`. None if it could not be resolved."""
        return await self.cache.properties.get_or_fetch(pid, self._load_property)

    async def run_query(self, descriptor: QueryDescriptor) -> List[str]:
        """Run a hierarchy query and return the flat list of ids it binds to `?i`."""
        data = await self._get_json(
            self.settings.sparql_url,
            f"{descriptor.kind} query for {descriptor.root}",
            params={"query": descriptor.sparql, "format": "json"},
        )
        if not isinstance(data, dict):
            return []
        bindings = (data.get("results") or {}).get("bindings") or []
        ids = [qid_from_binding(b) for b in bindings]
        result = [i for i in ids if i]
        logger.debug("%s query for %s returned %d ids", descriptor.kind, descriptor.root, len(result))
        return result

    def close(self) -> None:
        self.executor.shutdown(wait=False)
        self.session.close()
