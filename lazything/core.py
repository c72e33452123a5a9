"""
Core types, enums, and structured results for lazything.

This module provides the foundation shared by every pipeline stage:
- Search hit and proxy record types
- Hunt configuration dataclass
- Run summary
- Exception hierarchy
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any, Mapping
import time


# =============================================================================
# Enums
# =============================================================================

class ProxyKind(Enum):
    """Proxy variants recognised in a `proxies` list."""

    TROJAN = "trojan"
    VMESS = "vmess"


# Field that carries the secret for each variant
SECRET_FIELDS = {
    ProxyKind.TROJAN: "password",
    ProxyKind.VMESS: "uuid",
}


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class HuntConfig:
    """Hunt configuration with sensible defaults."""

    # Recency window (calendar months)
    months: int = 3

    # Batching
    batch_size: int = 50
    date_cooldown: float = 1.0     # between commit-date batches
    blob_cooldown: float = 3.0     # between blob batches

    # Network
    api_url: str = "https://api.github.com"
    request_timeout: float = 30.0

    # Retry settings
    max_retries: int = 1
    retry_delay: float = 1.0

    # Failure policy
    keep_going: bool = False

    # Caches (seconds / entries)
    date_cache_ttl: float = 60 * 60
    date_cache_size: int = 1000
    proxy_cache_ttl: float = 2 * 60 * 60
    proxy_cache_size: int = 500

    # Output
    output_dir: str = "."
    output_format: str = "yaml"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Structured Types
# =============================================================================

@dataclass(frozen=True)
class SearchHit:
    """A single code-search result."""

    name: str
    path: str
    sha: str                    # blob hash, used as cache key
    owner: str
    repo: str
    score: float = 0.0
    html_url: Optional[str] = None

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> "SearchHit":
        """Build a hit from a raw `/search/code` item."""
        repository = item.get("repository") or {}
        owner = repository.get("owner") or {}
        return cls(
            name=item.get("name", ""),
            path=item.get("path", ""),
            sha=item.get("sha", ""),
            owner=owner.get("login", ""),
            repo=repository.get("name", ""),
            score=float(item.get("score") or 0.0),
            html_url=item.get("html_url"),
        )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.full_name}:{self.path}"


@dataclass
class ProxyRecord:
    """
    A Trojan or VMess entry taken from a `proxies` list.

    The kind is decided once, from which secret field is present. The
    original mapping is kept untouched so that output preserves every field
    the source file carried.
    """

    kind: ProxyKind
    secret: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Any) -> Optional["ProxyRecord"]:
        """
        Classify a raw proxy mapping.

        Returns None when the entry is not a mapping, carries neither
        `password` nor `uuid`, or carries both.
        """
        if not isinstance(data, Mapping):
            return None

        has_password = "password" in data
        has_uuid = "uuid" in data
        if has_password == has_uuid:
            return None

        kind = ProxyKind.TROJAN if has_password else ProxyKind.VMESS
        secret = data[SECRET_FIELDS[kind]]
        if secret is None:
            return None

        return cls(kind=kind, secret=str(secret), data=dict(data))

    @property
    def name(self) -> Optional[str]:
        return self.data.get("name")

    @property
    def server(self) -> Optional[str]:
        return self.data.get("server")

    @property
    def port(self) -> Optional[int]:
        return self.data.get("port")

    @property
    def network(self) -> Optional[str]:
        return self.data.get("network")

    @property
    def udp(self) -> Optional[bool]:
        return self.data.get("udp")

    @property
    def sni(self) -> Optional[str]:
        return self.data.get("sni")

    @property
    def ws_opts(self) -> Optional[Dict[str, Any]]:
        return self.data.get("ws-opts")

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.name} ({self.server}:{self.port})"


@dataclass
class HuntSummary:
    """Aggregated statistics from one hunt."""

    domain: str = ""
    months: int = 3

    # Statistics
    hits: int = 0
    fresh: int = 0
    with_proxies: int = 0
    accepted: int = 0
    duplicates: int = 0
    ignored: int = 0
    failed: int = 0

    # Output
    output_path: Optional[str] = None

    # Timing
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None

    def finalize(self):
        """Mark the hunt as complete and calculate duration."""
        self.end_time = time.time()
        self.duration_seconds = self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "months": self.months,
            "stats": {
                "hits": self.hits,
                "fresh": self.fresh,
                "with_proxies": self.with_proxies,
                "accepted": self.accepted,
                "duplicates": self.duplicates,
                "ignored": self.ignored,
                "failed": self.failed,
                "duration_seconds": self.duration_seconds,
            },
            "output_path": self.output_path,
        }


# =============================================================================
# Exception Classes
# =============================================================================

class LazythingError(Exception):
    """Base exception for lazything errors."""


class RemoteError(LazythingError):
    """Non-success outcome from a GitHub API call."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def retryable(self) -> bool:
        """Transport failures, rate limiting and server errors."""
        return self.status is None or self.status == 429 or self.status >= 500


class ParseError(LazythingError):
    """YAML content that failed in an unrecognised way."""

    def __init__(self, message: str, sha: Optional[str] = None):
        super().__init__(message)
        self.sha = sha


class CredentialMissing(LazythingError):
    """No authentication token is stored."""

    def __init__(self, message: str = "Authentication key is required for filtering."):
        super().__init__(message)
