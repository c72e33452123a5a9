"""
Proxy Hunter - GitHub code-search discovery of Trojan/VMess proxy lists.

Runs the full pipeline for one domain:
1. Search YAML files mentioning the domain next to a `proxies:` key
2. Drop files whose last commit is older than the recency window
3. Fetch and parse the remaining files
4. Deduplicate proxies by secret and write the result file
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

try:
    import uvloop
    HAS_UVLOOP = True
except ImportError:
    HAS_UVLOOP = False

from .aggregator import ProxyAggregator
from .cache import TTLCache, create_caches
from .core import HuntConfig, HuntSummary, LazythingError, RemoteError, SearchHit
from .export import export_proxies
from .extractor import ProxyExtractor
from .github import GitHubClient
from .recency import RecencyFilter, utcnow
from .scheduler import BatchScheduler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], Awaitable[None]]


def install_uvloop():
    """Install uvloop as the event loop policy if available."""
    if HAS_UVLOOP:
        uvloop.install()
        logger.debug("uvloop installed for faster async I/O")
        return True
    return False


class ProxyHunter:
    """
    Hunts Trojan/VMess proxies published in GitHub-hosted YAML files.

    Usage:
        async with GitHubClient(token) as client:
            hunter = ProxyHunter(client, HuntConfig(months=3))
            summary = await hunter.run("example.com")
    """

    def __init__(
        self,
        client: GitHubClient,
        config: Optional[HuntConfig] = None,
        date_cache: Optional[TTLCache] = None,
        proxy_cache: Optional[TTLCache] = None,
        cache_dir: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.config = config or HuntConfig()
        self.progress_callback = progress_callback
        self._sleep = sleep

        if date_cache is None or proxy_cache is None:
            default_dates, default_proxies = create_caches(self.config, cache_dir)
            if date_cache is None:
                date_cache = default_dates
            if proxy_cache is None:
                proxy_cache = default_proxies

        self.date_cache = date_cache
        self.proxy_cache = proxy_cache

        self.recency = RecencyFilter(client, date_cache, months=self.config.months, now=now)
        self.extractor = ProxyExtractor(client, proxy_cache)

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def run(self, domain: str) -> HuntSummary:
        """
        Hunt a domain and write the result file.

        Caches are loaded first and saved afterwards, also when the hunt
        aborts, so completed lookups are reused by the next run.
        """
        self.date_cache.load()
        self.proxy_cache.load()

        try:
            aggregator, summary = await self.hunt(domain)
        finally:
            self._save_caches()

        summary.output_path = export_proxies(
            aggregator.to_list(),
            output_dir=self.config.output_dir,
            fmt=self.config.output_format,
        )
        if summary.output_path:
            logger.info(f"Result saved at {summary.output_path}")
        else:
            summary.failed += 1

        summary.finalize()
        return summary

    async def hunt(self, domain: str) -> Tuple[ProxyAggregator, HuntSummary]:
        """Run search, recency filter, extraction and dedupe (no file output)."""
        summary = HuntSummary(domain=domain, months=self.config.months)
        aggregator = ProxyAggregator()

        logger.info(f"Searching GitHub for proxy lists mentioning {domain}")
        hits = await self._call(self.client.search, domain)
        summary.hits = len(hits)
        logger.info(f"Search returned {len(hits)} files")

        # Phase 1: recency filter
        fresh = await self._filter_recent(hits, summary)
        summary.fresh = len(fresh)
        logger.info(f"Found: {len(fresh)} repository")

        # Phase 2: fetch, parse, dedupe
        await self._collect(fresh, aggregator, summary)

        summary.accepted = len(aggregator)
        summary.duplicates = aggregator.duplicates
        summary.ignored = aggregator.ignored
        logger.info(
            f"Collected {summary.accepted} unique proxies "
            f"({summary.duplicates} duplicates, {summary.ignored} ignored)"
        )
        return aggregator, summary

    # =========================================================================
    # Stages
    # =========================================================================

    async def _filter_recent(self, hits: List[SearchHit], summary: HuntSummary) -> List[SearchHit]:
        scheduler = BatchScheduler(
            batch_size=self.config.batch_size,
            cooldown=self.config.date_cooldown,
            name="commit dates",
            sleep=self._sleep,
        )
        return await self.recency.filter(
            hits,
            scheduler,
            resolve=self._guard(self.recency.resolve, summary),
            progress_callback=self._progress("Checking dates"),
        )

    async def _collect(
        self,
        fresh: List[SearchHit],
        aggregator: ProxyAggregator,
        summary: HuntSummary,
    ):
        total = len(fresh)
        extract = self._guard(self.extractor.extract, summary)
        # A progress bar already shows per-item progress
        level = logging.DEBUG if self.progress_callback else logging.INFO

        async def fetch(item: Tuple[int, SearchHit]):
            index, hit = item
            logger.log(level, f"Fetching {index} of {total}: {hit.repo} - {hit.owner}")
            return await extract(hit)

        def aggregate(batch: Sequence[Tuple[int, SearchHit]], results: List[Any]):
            for (_, hit), entries in zip(batch, results):
                if not entries:
                    continue
                summary.with_proxies += 1
                accepted = aggregator.offer_all(entries)
                logger.debug(f"{hit}: {accepted}/{len(entries)} new proxies")

        scheduler = BatchScheduler(
            batch_size=self.config.batch_size,
            cooldown=self.config.blob_cooldown,
            name="blobs",
            sleep=self._sleep,
        )
        await scheduler.run(
            list(enumerate(fresh, 1)),
            fetch,
            progress_callback=self._progress("Fetching"),
            on_batch=aggregate,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _call(self, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        """Await fn, retrying retryable RemoteErrors with linear back-off."""
        attempt = 0
        while True:
            try:
                return await fn(*args)
            except RemoteError as e:
                if not e.retryable or attempt >= self.config.max_retries:
                    raise
                attempt += 1
                logger.debug(f"Attempt {attempt} failed ({e}), retrying")
                await self._sleep(self.config.retry_delay * attempt)

    def _guard(self, fn: Callable[[SearchHit], Awaitable[Any]], summary: HuntSummary):
        """Wrap a per-hit stage with retries and the keep-going policy."""
        async def guarded(hit: SearchHit):
            try:
                return await self._call(fn, hit)
            except LazythingError as e:
                if not self.config.keep_going:
                    raise
                summary.failed += 1
                logger.warning(f"Skipping {hit}: {e}")
                return None

        return guarded

    def _progress(self, stage: str):
        if not self.progress_callback:
            return None

        async def report(done: int, total: int):
            await self.progress_callback(stage, done, total)

        return report

    def _save_caches(self):
        for cache in (self.date_cache, self.proxy_cache):
            try:
                cache.save()
            except OSError as e:
                logger.warning(f"Failed to save {cache.cache_id}: {e}")


# =============================================================================
# Convenience Functions
# =============================================================================

async def hunt_domain(
    domain: str,
    token: str,
    config: Optional[HuntConfig] = None,
    cache_dir: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> HuntSummary:
    """
    Hunt one domain with a fresh client.

    Args:
        domain: Domain to look for
        token: GitHub token
        config: Optional hunt config
        cache_dir: Override the cache directory

    Returns:
        HuntSummary
    """
    config = config or HuntConfig()

    async with GitHubClient(token, api_url=config.api_url, timeout=config.request_timeout) as client:
        hunter = ProxyHunter(
            client,
            config,
            cache_dir=cache_dir,
            progress_callback=progress_callback,
        )
        return await hunter.run(domain)
