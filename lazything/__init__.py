"""
lazything v1.0.0
================

Hunts Trojan/VMess proxy lists that people publish in YAML files on GitHub.

Features:
- GitHub code search for `proxies:` files mentioning a domain
- Last-commit recency filter (calendar months)
- Tolerant YAML extraction of `proxies` lists
- Deduplication by password / uuid, first seen wins
- Fixed-window batching under GitHub rate limits
- On-disk TTL caches for commit dates and parsed files

Quick Start:
    from lazything import hunt_domain, HuntConfig
    import asyncio

    summary = asyncio.run(hunt_domain("example.com", token, HuntConfig(months=6)))
    print(summary.output_path)

    # Reusing a client
    from lazything import GitHubClient, ProxyHunter

    async def hunt():
        async with GitHubClient(token) as client:
            hunter = ProxyHunter(client)
            aggregator, summary = await hunter.hunt("example.com")
            return aggregator.to_list()

CLI Usage:
    lazything -k <token>
    lazything -f 6 example.com
"""

__version__ = "1.0.0"

# =============================================================================
# Core Types
# =============================================================================

from .core import (
    # Types
    SearchHit,
    ProxyRecord,
    HuntConfig,
    HuntSummary,

    # Enums
    ProxyKind,

    # Exceptions
    LazythingError,
    RemoteError,
    ParseError,
    CredentialMissing,
)

# =============================================================================
# Pipeline Components
# =============================================================================

from .aggregator import ProxyAggregator
from .cache import MISSING, TTLCache, create_caches
from .credentials import CredentialStore
from .extractor import ProxyExtractor, parse_proxy_list
from .github import GitHubClient
from .recency import RecencyFilter
from .scheduler import BatchScheduler

# =============================================================================
# Orchestration
# =============================================================================

from .hunter import ProxyHunter, hunt_domain, install_uvloop
from .config import load_config
from .export import JSONExporter, YAMLExporter, export_proxies

# =============================================================================
# Logging
# =============================================================================

from .logger import setup_logger, get_logger, set_level, ProgressReporter

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",

    # Core types
    "SearchHit",
    "ProxyRecord",
    "HuntConfig",
    "HuntSummary",
    "ProxyKind",

    # Exceptions
    "LazythingError",
    "RemoteError",
    "ParseError",
    "CredentialMissing",

    # Components
    "ProxyAggregator",
    "MISSING",
    "TTLCache",
    "create_caches",
    "CredentialStore",
    "ProxyExtractor",
    "parse_proxy_list",
    "GitHubClient",
    "RecencyFilter",
    "BatchScheduler",

    # Orchestration
    "ProxyHunter",
    "hunt_domain",
    "install_uvloop",
    "load_config",
    "JSONExporter",
    "YAMLExporter",
    "export_proxies",

    # Logging
    "setup_logger",
    "get_logger",
    "set_level",
    "ProgressReporter",
]
