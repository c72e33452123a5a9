"""
Deduplicating aggregator for proxy records.

Collects records from every extracted file into one ordered list. A record
is kept only the first time its secret (Trojan password or VMess uuid) is
seen, regardless of which repository it came from.
"""

import logging
from typing import Any, Dict, Iterable, List, Set

from .core import ProxyRecord

logger = logging.getLogger(__name__)


class ProxyAggregator:
    """
    Ordered, secret-keyed set of proxy records for a single run.

    Usage:
        aggregator = ProxyAggregator()
        for entry in entries:
            aggregator.offer(entry)
        document = {'proxies': aggregator.to_list()}
    """

    def __init__(self):
        self.records: List[ProxyRecord] = []
        self._seen: Set[str] = set()

        # Statistics
        self.duplicates = 0
        self.ignored = 0

    def offer(self, entry: Any) -> bool:
        """
        Add a raw proxy mapping (or a ProxyRecord) if its secret is new.

        Entries that are neither Trojan nor VMess, or look like both, are
        ignored.

        Returns:
            True if the entry was appended
        """
        record = entry if isinstance(entry, ProxyRecord) else ProxyRecord.from_mapping(entry)
        if record is None:
            self.ignored += 1
            logger.debug(f"Skipping unclassifiable proxy entry: {_describe(entry)}")
            return False

        if record.secret in self._seen:
            self.duplicates += 1
            return False

        self.records.append(record)
        self._seen.add(record.secret)
        return True

    def offer_all(self, entries: Iterable[Any]) -> int:
        """Offer entries in order. Returns how many were accepted."""
        return sum(1 for entry in entries if self.offer(entry))

    def __contains__(self, secret: str) -> bool:
        return secret in self._seen

    def __len__(self) -> int:
        return len(self.records)

    def to_list(self) -> List[Dict[str, Any]]:
        """Accepted records as plain mappings, in first-seen order."""
        return [record.to_dict() for record in self.records]


def _describe(entry: Any) -> str:
    if isinstance(entry, dict):
        return str(entry.get('name', '<unnamed>'))
    return type(entry).__name__
