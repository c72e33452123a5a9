"""
Recency filter for search hits.

A hit survives when the newest commit touching its file is no older than
the configured number of calendar months. Commit dates are cached by blob
sha; a cached None means GitHub had no date for that file.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from .cache import MISSING, TTLCache
from .core import SearchHit
from .github import GitHubClient
from .scheduler import BatchScheduler

logger = logging.getLogger(__name__)

DEFAULT_MONTHS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cutoff_for(now: datetime, months: int) -> datetime:
    """Oldest modification time still inside the window (inclusive)."""
    return now - relativedelta(months=months)


def parse_commit_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 commit date; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = isoparse(value)
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable commit date: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RecencyFilter:
    """
    Keeps hits modified within the last `months` months.

    Usage:
        recency = RecencyFilter(client, date_cache, months=3)
        fresh = await recency.filter(hits, BatchScheduler(50, cooldown=1.0))
    """

    def __init__(
        self,
        client: GitHubClient,
        cache: TTLCache,
        months: int = DEFAULT_MONTHS,
        now: Callable[[], datetime] = utcnow,
    ):
        if months < 0:
            raise ValueError("months must not be negative")
        self.client = client
        self.cache = cache
        self.months = months
        self.now = now
        self.lookups = 0

    async def resolve(self, hit: SearchHit) -> Optional[str]:
        """Commit date for a hit, from cache or GitHub (result is cached)."""
        cached = self.cache.get(hit.sha)
        if cached is not MISSING:
            return cached

        self.lookups += 1
        date = await self.client.latest_commit_date(hit.owner, hit.repo, hit.path)
        self.cache.set(hit.sha, date)
        return date

    def is_fresh(self, date: Optional[str], now: Optional[datetime] = None) -> bool:
        """True if date falls at or after the window's start."""
        commit_date = parse_commit_date(date)
        if commit_date is None:
            return False
        return commit_date >= cutoff_for(now or self.now(), self.months)

    def select(self, hits: Sequence[SearchHit], dates: Sequence[Optional[str]]) -> List[SearchHit]:
        """Pair hits with their resolved dates and keep the fresh ones, in order."""
        now = self.now()
        return [hit for hit, date in zip(hits, dates) if self.is_fresh(date, now)]

    async def filter(
        self,
        hits: Sequence[SearchHit],
        scheduler: Optional[BatchScheduler] = None,
        resolve: Optional[Callable[[SearchHit], Awaitable[Optional[str]]]] = None,
        progress_callback: Optional[Callable[[int, int], Awaitable[None]]] = None,
    ) -> List[SearchHit]:
        """
        Resolve every hit's date in batches, then select fresh hits.

        Args:
            hits: Search hits, in the order to keep
            scheduler: Batch scheduler (default: one with default batching)
            resolve: Replacement for self.resolve, e.g. wrapped with retries
            progress_callback: Passed through to the scheduler
        """
        scheduler = scheduler or BatchScheduler(name="commit dates")
        dates = await scheduler.run(
            hits,
            resolve or self.resolve,
            progress_callback=progress_callback,
        )
        return self.select(hits, dates)
