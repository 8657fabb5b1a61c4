"""
Tests for the parallel content downloader.

Runs against an in-process aiohttp server; no external network access.
"""

import asyncio

from aiohttp import test_utils, web

from driveriver.downloader import ContentDownloader


def run_against(routes: dict, downloader: ContentDownloader, paths: dict):
    """
    Start a local server with `routes`, download {file_id: path} and return the results.
    """
    async def main():
        app = web.Application()
        for path, handler in routes.items():
            app.router.add_get(path, handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            targets = {file_id: str(server.make_url(path)) for file_id, path in paths.items()}
            return await downloader.fetch_all_async(targets)
        finally:
            await server.close()

    return asyncio.run(main())


class TestContentDownloader:
    """Tests for ContentDownloader.fetch_all_async()."""

    def test_downloads_all_targets(self):
        """Every target's body is returned under its file id."""
        async def handler(request):
            return web.Response(body=f"body-{request.match_info['name']}".encode())

        results = run_against(
            {"/files/{name}": handler},
            ContentDownloader(max_workers=3, retry_backoff=0),
            {"a": "/files/a", "b": "/files/b", "c": "/files/c"},
        )
        assert results == {"a": b"body-a", "b": b"body-b", "c": b"body-c"}

    def test_large_body_streamed(self):
        """Bodies larger than one chunk are reassembled."""
        payload = bytes(range(256)) * 1000

        async def handler(request):
            return web.Response(body=payload)

        results = run_against(
            {"/big": handler},
            ContentDownloader(chunk_size=1024, retry_backoff=0),
            {"big": "/big"},
        )
        assert results["big"] == payload

    def test_http_error_is_none(self):
        """A 404 yields None without affecting siblings."""
        async def ok(request):
            return web.Response(body=b"ok")

        async def missing(request):
            return web.Response(status=404)

        results = run_against(
            {"/ok": ok, "/missing": missing},
            ContentDownloader(retry_backoff=0),
            {"good": "/ok", "bad": "/missing"},
        )
        assert results == {"good": b"ok", "bad": None}

    def test_server_error_retried(self):
        """A transient 503 is retried."""
        calls = {"count": 0}

        async def flaky(request):
            calls["count"] += 1
            if calls["count"] == 1:
                return web.Response(status=503)
            return web.Response(body=b"finally")

        results = run_against(
            {"/flaky": flaky},
            ContentDownloader(max_retries=3, retry_backoff=0),
            {"f": "/flaky"},
        )
        assert results == {"f": b"finally"}
        assert calls["count"] == 2

    def test_persistent_server_error_is_none(self):
        """A 500 on every attempt gives up with None."""
        async def broken(request):
            return web.Response(status=500)

        results = run_against(
            {"/broken": broken},
            ContentDownloader(max_retries=2, retry_backoff=0),
            {"f": "/broken"},
        )
        assert results == {"f": None}

    def test_auth_header_from_getter(self):
        """The bearer token is read from the getter."""
        seen = []

        async def handler(request):
            seen.append(request.headers.get("Authorization"))
            return web.Response(body=b"x")

        run_against(
            {"/x": handler},
            ContentDownloader(auth_token=lambda: "abc", retry_backoff=0),
            {"x": "/x"},
        )
        assert seen == ["Bearer abc"]

    def test_concurrency_bounded(self):
        """No more than max_workers requests are in flight."""
        state = {"active": 0, "peak": 0}

        async def slow(request):
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.05)
            state["active"] -= 1
            return web.Response(body=b"s")

        results = run_against(
            {"/slow/{n}": slow},
            ContentDownloader(max_workers=2, retry_backoff=0),
            {str(n): f"/slow/{n}" for n in range(6)},
        )
        assert len(results) == 6
        assert state["peak"] <= 2


class TestFetchAll:
    """Tests for the blocking fetch_all() wrapper."""

    def test_empty_targets(self):
        """Nothing to fetch returns an empty dict."""
        assert ContentDownloader().fetch_all({}) == {}

    def test_unreachable_host_is_none(self):
        """Connection failures degrade to None."""
        downloader = ContentDownloader(max_retries=2, retry_backoff=0, timeout=(2, 2))
        assert downloader.fetch_all({"x": "http://127.0.0.1:1/never"}) == {"x": None}
