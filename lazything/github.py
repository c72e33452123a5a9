"""
Asynchronous GitHub REST client.

Issues the three requests a hunt needs:
- code search (paginated)
- latest commit touching a path
- blob content by sha

Every non-success outcome raises RemoteError. Retrying is left to callers.
"""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .core import SearchHit, RemoteError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

SEARCH_CODE_ENDPOINT = "/search/code"
COMMITS_ENDPOINT = "/repos/{owner}/{repo}/commits"
BLOB_ENDPOINT = "/repos/{owner}/{repo}/git/blobs/{sha}"

# Anchors matches on files that actually declare a proxy list
SEARCH_MARKER = '"proxies:"'
SEARCH_LANGUAGE = "yaml"

SEARCH_PAGE_SIZE = 100
SEARCH_RESULT_CAP = 1000   # GitHub never returns more than this per query


def build_search_query(domain: str) -> str:
    """Combine the marker, the domain and the language facet."""
    return f"{SEARCH_MARKER} {domain} language:{SEARCH_LANGUAGE}"


class GitHubClient:
    """
    Thin async wrapper over the GitHub API.

    Usage:
        async with GitHubClient(token) as client:
            hits = await client.search("example.com")
            date = await client.latest_commit_date(hit.owner, hit.repo, hit.path)
            raw = await client.fetch_blob(hit.owner, hit.repo, hit.sha)
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: Optional[float] = 30.0,
    ):
        self.token = token
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self.requests_made = 0

    async def __aenter__(self):
        await self._init_session()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def _init_session(self):
        """Initialize aiohttp session."""
        if self._session is None:
            headers = {
                'User-Agent': 'lazything',
                'Accept': 'application/vnd.github.v3+json',
            }
            if self.token:
                headers['Authorization'] = f'token {self.token}'

            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)

    async def close(self):
        """Clean up resources."""
        if self._session:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def search(self, domain: str) -> List[SearchHit]:
        """
        Search YAML files mentioning a domain next to a `proxies:` key.

        Follows pages until the result set is exhausted.
        """
        query = build_search_query(domain)
        hits: List[SearchHit] = []
        page = 1

        while True:
            data = await self._get_json(
                SEARCH_CODE_ENDPOINT,
                params={'q': query, 'per_page': SEARCH_PAGE_SIZE, 'page': page},
                action="search code",
            )
            items = data.get('items') or []
            hits.extend(SearchHit.from_api(item) for item in items)

            total = min(int(data.get('total_count') or 0), SEARCH_RESULT_CAP)
            logger.debug(f"Search page {page}: {len(items)} items ({len(hits)}/{total})")

            if len(items) < SEARCH_PAGE_SIZE or len(hits) >= total:
                break
            page += 1

        return hits

    async def latest_commit_date(self, owner: str, repo: str, path: str) -> Optional[str]:
        """Return the committer date of the newest commit touching path."""
        data = await self._get_json(
            COMMITS_ENDPOINT.format(owner=owner, repo=repo),
            params={'path': path, 'per_page': 1},
            action="retrieve commit date",
        )
        if not data:
            return None

        commit = data[0].get('commit') or {}
        committer = commit.get('committer') or {}
        return committer.get('date')

    async def fetch_blob(self, owner: str, repo: str, sha: str) -> bytes:
        """Return the raw bytes of a blob."""
        data = await self._get_json(
            BLOB_ENDPOINT.format(owner=owner, repo=repo, sha=sha),
            action="get blob",
        )

        content = data.get('content') or ''
        encoding = data.get('encoding')

        if encoding == 'base64':
            try:
                return base64.b64decode(content)
            except ValueError as e:
                raise RemoteError(f"Failed getting blob {sha}: bad base64 payload ({e})")
        if encoding == 'utf-8':
            return content.encode('utf-8')

        raise RemoteError(f"Failed getting blob {sha}: unsupported encoding {encoding!r}")

    # =========================================================================
    # Transport
    # =========================================================================

    async def _get_json(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        action: str = "request",
    ) -> Any:
        await self._init_session()
        url = f"{self.api_url}{endpoint}"
        self.requests_made += 1

        try:
            async with self._session.get(url, params=params) as response:
                if not 200 <= response.status < 300:
                    message = await self._error_message(response)
                    raise RemoteError(
                        f"Failed to {action}: HTTP {response.status} {message}".rstrip(),
                        status=response.status,
                    )
                return await response.json(content_type=None)

        except asyncio.TimeoutError:
            raise RemoteError(f"Failed to {action}: timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise RemoteError(f"Failed to {action}: {e}")
        except ValueError as e:
            raise RemoteError(f"Failed to {action}: invalid JSON response ({e})")

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        """Pull GitHub's `message` field out of an error body."""
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            return response.reason or ''
        if isinstance(body, dict) and body.get('message'):
            return str(body['message'])
        return response.reason or ''
