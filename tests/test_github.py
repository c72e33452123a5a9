"""
Tests for github.py - GitHub REST client against a local aiohttp server.
"""

import asyncio
import base64
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp import test_utils
from lazything.core import RemoteError
from lazything.github import GitHubClient, build_search_query


def search_item(i):
    return {
        "name": f"c{i}.yaml",
        "path": f"sub/c{i}.yaml",
        "sha": f"sha{i}",
        "score": 1.0,
        "repository": {"name": f"repo{i}", "owner": {"login": f"owner{i}"}},
    }


@asynccontextmanager
async def github_server(handlers):
    """Serve handlers ({path: handler}) and yield (api_url, requests)."""
    requests = []

    @web.middleware
    async def record(request, handler):
        requests.append(request)
        return await handler(request)

    app = web.Application(middlewares=[record])
    for path, handler in handlers.items():
        app.router.add_get(path, handler)

    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/")).rstrip("/"), requests
    finally:
        await server.close()


class TestBuildSearchQuery:
    """Tests for build_search_query."""

    def test_query(self):
        assert build_search_query("example.com") == '"proxies:" example.com language:yaml'


class TestSearch:
    """Tests for GitHubClient.search."""

    @pytest.mark.asyncio
    async def test_single_page(self):
        async def handler(request):
            return web.json_response({"total_count": 2, "items": [search_item(1), search_item(2)]})

        async with github_server({"/search/code": handler}) as (url, requests):
            async with GitHubClient("tok", api_url=url) as client:
                hits = await client.search("example.com")

        assert [h.sha for h in hits] == ["sha1", "sha2"]
        assert hits[0].owner == "owner1"
        assert hits[0].repo == "repo1"
        assert len(requests) == 1

        query = requests[0].query
        assert query["q"] == '"proxies:" example.com language:yaml'
        assert query["per_page"] == "100"
        assert query["page"] == "1"

    @pytest.mark.asyncio
    async def test_headers(self):
        async def handler(request):
            return web.json_response({"total_count": 0, "items": []})

        async with github_server({"/search/code": handler}) as (url, requests):
            async with GitHubClient("tok", api_url=url) as client:
                await client.search("example.com")

        headers = requests[0].headers
        assert headers["Authorization"] == "token tok"
        assert headers["Accept"] == "application/vnd.github.v3+json"
        assert headers["User-Agent"] == "lazything"

    @pytest.mark.asyncio
    async def test_pagination(self):
        async def handler(request):
            page = int(request.query["page"])
            start = (page - 1) * 100
            count = 100 if page == 1 else 50
            items = [search_item(i) for i in range(start, start + count)]
            return web.json_response({"total_count": 150, "items": items})

        async with github_server({"/search/code": handler}) as (url, requests):
            async with GitHubClient("tok", api_url=url) as client:
                hits = await client.search("example.com")

        assert len(hits) == 150
        assert [r.query["page"] for r in requests] == ["1", "2"]
        assert hits[0].sha == "sha0"
        assert hits[-1].sha == "sha149"

    @pytest.mark.asyncio
    async def test_stops_at_total_count(self):
        async def handler(request):
            return web.json_response({"total_count": 100, "items": [search_item(i) for i in range(100)]})

        async with github_server({"/search/code": handler}) as (url, requests):
            async with GitHubClient("tok", api_url=url) as client:
                hits = await client.search("example.com")

        assert len(hits) == 100
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_error_status(self):
        async def handler(request):
            return web.json_response({"message": "Bad credentials"}, status=401)

        async with github_server({"/search/code": handler}) as (url, _):
            async with GitHubClient("bad", api_url=url) as client:
                with pytest.raises(RemoteError) as info:
                    await client.search("example.com")

        assert info.value.status == 401
        assert "Bad credentials" in str(info.value)
        assert info.value.retryable is False


class TestLatestCommitDate:
    """Tests for GitHubClient.latest_commit_date."""

    @pytest.mark.asyncio
    async def test_date(self):
        async def handler(request):
            assert request.match_info["owner"] == "alice"
            assert request.match_info["repo"] == "nodes"
            return web.json_response([
                {"sha": "c1", "commit": {"committer": {"date": "2024-05-01T10:00:00Z"}}},
            ])

        routes = {"/repos/{owner}/{repo}/commits": handler}
        async with github_server(routes) as (url, requests):
            async with GitHubClient("tok", api_url=url) as client:
                date = await client.latest_commit_date("alice", "nodes", "sub/c.yaml")

        assert date == "2024-05-01T10:00:00Z"
        assert requests[0].query["path"] == "sub/c.yaml"
        assert requests[0].query["per_page"] == "1"

    @pytest.mark.asyncio
    async def test_no_commits(self):
        async def handler(request):
            return web.json_response([])

        routes = {"/repos/{owner}/{repo}/commits": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                assert await client.latest_commit_date("alice", "nodes", "c.yaml") is None

    @pytest.mark.asyncio
    async def test_missing_committer(self):
        async def handler(request):
            return web.json_response([{"sha": "c1", "commit": {}}])

        routes = {"/repos/{owner}/{repo}/commits": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                assert await client.latest_commit_date("alice", "nodes", "c.yaml") is None

    @pytest.mark.asyncio
    async def test_server_error_retryable(self):
        async def handler(request):
            return web.Response(status=502, text="bad gateway")

        routes = {"/repos/{owner}/{repo}/commits": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                with pytest.raises(RemoteError) as info:
                    await client.latest_commit_date("alice", "nodes", "c.yaml")

        assert info.value.status == 502
        assert info.value.retryable is True


class TestFetchBlob:
    """Tests for GitHubClient.fetch_blob."""

    CONTENT = "proxies:\n  - {name: a, password: p}\n"

    @pytest.mark.asyncio
    async def test_base64(self):
        encoded = base64.encodebytes(self.CONTENT.encode("utf-8")).decode("ascii")

        async def handler(request):
            assert request.match_info["sha"] == "sha1"
            return web.json_response({"sha": "sha1", "encoding": "base64", "content": encoded})

        routes = {"/repos/{owner}/{repo}/git/blobs/{sha}": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                raw = await client.fetch_blob("alice", "nodes", "sha1")

        assert raw == self.CONTENT.encode("utf-8")

    @pytest.mark.asyncio
    async def test_utf8(self):
        async def handler(request):
            return web.json_response({"sha": "sha1", "encoding": "utf-8", "content": self.CONTENT})

        routes = {"/repos/{owner}/{repo}/git/blobs/{sha}": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                assert await client.fetch_blob("alice", "nodes", "sha1") == self.CONTENT.encode("utf-8")

    @pytest.mark.asyncio
    async def test_unknown_encoding(self):
        async def handler(request):
            return web.json_response({"sha": "sha1", "encoding": "rot13", "content": "x"})

        routes = {"/repos/{owner}/{repo}/git/blobs/{sha}": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                with pytest.raises(RemoteError):
                    await client.fetch_blob("alice", "nodes", "sha1")

    @pytest.mark.asyncio
    async def test_not_found(self):
        async def handler(request):
            return web.json_response({"message": "Not Found"}, status=404)

        routes = {"/repos/{owner}/{repo}/git/blobs/{sha}": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                with pytest.raises(RemoteError) as info:
                    await client.fetch_blob("alice", "nodes", "sha1")

        assert info.value.status == 404


class TestTransport:
    """Tests for transport failures."""

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(1)
            return web.json_response([])

        routes = {"/repos/{owner}/{repo}/commits": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url, timeout=0.05) as client:
                with pytest.raises(RemoteError) as info:
                    await client.latest_commit_date("alice", "nodes", "c.yaml")

        assert info.value.status is None
        assert info.value.retryable is True

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        server = test_utils.TestServer(web.Application())
        await server.start_server()
        url = str(server.make_url("/")).rstrip("/")
        await server.close()

        async with GitHubClient("tok", api_url=url) as client:
            with pytest.raises(RemoteError) as info:
                await client.search("example.com")
        assert info.value.status is None

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async def handler(request):
            return web.Response(text="<html>oops</html>", content_type="text/html")

        async with github_server({"/search/code": handler}) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                with pytest.raises(RemoteError):
                    await client.search("example.com")

    @pytest.mark.asyncio
    async def test_request_counter(self):
        async def handler(request):
            return web.json_response([])

        routes = {"/repos/{owner}/{repo}/commits": handler}
        async with github_server(routes) as (url, _):
            async with GitHubClient("tok", api_url=url) as client:
                await client.latest_commit_date("a", "b", "c")
                await client.latest_commit_date("a", "b", "d")
                assert client.requests_made == 2
