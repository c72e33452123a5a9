"""
Proxy list extraction from YAML blobs.

Real-world proxy-list generators emit a fair amount of broken YAML. A
closed set of known symptoms ("recognized junk") is treated as "no list
here" and cached like any other outcome. Every other YAML failure raises
ParseError.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

import yaml

from .cache import MISSING, TTLCache
from .core import ParseError, SearchHit
from .github import GitHubClient

logger = logging.getLogger(__name__)

PROXIES_KEY = 'proxies'

MERGE_TAG = 'tag:yaml.org,2002:merge'

# PyYAML `problem` prefixes tolerated as "no usable data"
RECOGNIZED_JUNK = (
    "mapping values are not allowed here",
    "could not find expected ':'",
    "found unexpected end of stream",
    "found duplicate key",
)


class ProxyListLoader(yaml.SafeLoader):
    """
    Safe loader that refuses repeated keys inside one mapping.

    The check runs on the composed node graph, before `<<` merges are
    flattened, so keys pulled in by a merge never count as duplicates.
    Aliases are expanded without any count limit.
    """

    def compose_mapping_node(self, anchor):
        node = super().compose_mapping_node(anchor)
        seen = set()
        for key_node, _ in node.value:
            if not isinstance(key_node, yaml.ScalarNode) or key_node.tag == MERGE_TAG:
                continue
            key = (key_node.tag, key_node.value)
            if key in seen:
                raise yaml.composer.ComposerError(
                    "while composing a mapping", node.start_mark,
                    f"found duplicate key {key_node.value!r}", key_node.start_mark,
                )
            seen.add(key)
        return node


def is_recognized_junk(error: yaml.YAMLError) -> bool:
    """True if a YAML error belongs to the tolerated set."""
    problem = getattr(error, 'problem', None)
    if not problem:
        return False
    return problem.startswith(RECOGNIZED_JUNK)


def _json_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if key is None or isinstance(key, (bool, int, float)):
        return json.dumps(key)
    return str(key)


def _jsonable(value: Any, sha: Optional[str] = None, _active: Optional[set] = None) -> Any:
    """
    Coerce YAML-native values (dates, sets, non-string keys) into JSON types.

    A recursive alias (`&a [ *a ]`) loads as a self-referencing structure,
    so containers on the current path are tracked by id.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if not isinstance(value, (dict, list, tuple, set, frozenset)):
        return str(value)

    active = set() if _active is None else _active
    if id(value) in active:
        raise ParseError("YAML parsing error: recursive alias in proxy list", sha=sha)
    active.add(id(value))
    try:
        if isinstance(value, dict):
            return {_json_key(k): _jsonable(v, sha, active) for k, v in value.items()}
        return [_jsonable(item, sha, active) for item in value]
    finally:
        active.discard(id(value))


def parse_proxy_list(
    content: Union[bytes, str],
    sha: Optional[str] = None,
) -> Optional[List[Dict[str, Any]]]:
    """
    Parse a YAML document and return its `proxies` entries.

    Returns:
        The mapping entries under a top-level `proxies` key, or None when
        the document has no such non-empty list or is recognized junk.

    Raises:
        ParseError: content is not UTF-8, fails in an unrecognized way or
            holds a recursive alias
    """
    if isinstance(content, bytes):
        try:
            content = content.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise ParseError(f"Blob is not valid UTF-8: {e}", sha=sha)

    try:
        document = yaml.load(content, Loader=ProxyListLoader)
    except yaml.YAMLError as e:
        if is_recognized_junk(e):
            logger.debug(f"Recognized junk in {sha}: {getattr(e, 'problem', e)}")
            return None
        raise ParseError(f"YAML parsing error: {e}", sha=sha)
    except RecursionError:
        raise ParseError("YAML parsing error: document nests too deeply", sha=sha)

    if not isinstance(document, dict) or PROXIES_KEY not in document:
        return None

    proxies = document[PROXIES_KEY]
    if not isinstance(proxies, list):
        return None

    entries = [entry for entry in proxies if isinstance(entry, dict)]
    if not entries:
        return None

    try:
        return _jsonable(entries, sha)
    except RecursionError:
        raise ParseError("YAML parsing error: document nests too deeply", sha=sha)


class ProxyExtractor:
    """
    Fetches a hit's blob and extracts its proxy list, through the cache.

    Usage:
        extractor = ProxyExtractor(client, proxy_cache)
        entries = await extractor.extract(hit)   # list of dicts or None
    """

    def __init__(self, client: GitHubClient, cache: TTLCache):
        self.client = client
        self.cache = cache
        self.fetches = 0

    async def extract(self, hit: SearchHit) -> Optional[List[Dict[str, Any]]]:
        cached = self.cache.get(hit.sha)
        if cached is not MISSING:
            return cached

        self.fetches += 1
        raw = await self.client.fetch_blob(hit.owner, hit.repo, hit.sha)
        proxies = parse_proxy_list(raw, sha=hit.sha)
        self.cache.set(hit.sha, proxies)
        return proxies
