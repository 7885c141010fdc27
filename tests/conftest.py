"""
Shared test configuration and fixtures.

Provides a temporary data directory, an opened local store, a manual
connectivity source, and a fake remote sync endpoint served by aiohttp.
"""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from offline_store import LocalStore, ManualConnectivitySource


class FakeRemote:
    """
    Fake remote store for sync tests.

    Records every payload it receives. The response status and an
    optional delay are configurable per test.
    """

    def __init__(self) -> None:
        self.payloads: list[dict] = []
        self.status = 200
        self.delay = 0.0
        self.release: asyncio.Event | None = None

    async def handle(self, request: web.Request) -> web.Response:
        payload = await request.json()
        self.payloads.append(payload)
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.status >= 300:
            return web.Response(status=self.status, text="rejected")
        return web.json_response(
            {
                "ok": True,
                "businesses": len(payload.get("businesses", [])),
                "articles": len(payload.get("articles", [])),
            },
            status=self.status,
        )

    @property
    def calls(self) -> int:
        return len(self.payloads)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Directory for collection files."""
    return tmp_path / "data"


@pytest.fixture
async def store(data_dir: Path) -> AsyncIterator[LocalStore]:
    """An opened local store with the default schemas."""
    local = LocalStore(data_dir)
    await local.open()
    yield local
    await local.close()


@pytest.fixture
def connectivity() -> ManualConnectivitySource:
    """Connectivity source that starts online."""
    return ManualConnectivitySource(online=True)


@pytest.fixture
async def fake_remote() -> AsyncIterator[tuple[FakeRemote, str]]:
    """Fake remote endpoint and its URL."""
    remote = FakeRemote()
    app = web.Application()
    app.router.add_post("/sync", remote.handle)

    server = TestServer(app)
    await server.start_server()
    try:
        yield remote, str(server.make_url("/sync"))
    finally:
        if remote.release is not None:
            remote.release.set()
        await server.close()

