import socket
from pathlib import Path

import pytest
from aiohttp import web

from events import EventBus
from settings import ConfigStore


class FakeRemote:
    """A running fake remote API and the requests it received"""

    def __init__(self, server, requests):
        self.server = server
        self.requests = requests

    @property
    def url(self) -> str:
        return str(self.server.make_url("")).rstrip("/")


@pytest.fixture
def bus():
    event_bus = EventBus()
    yield event_bus
    event_bus.shutdown()


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(directory=tmp_path / "chatdesk")


@pytest.fixture
def unused_port() -> int:
    """A localhost port with nothing listening on it"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def remote_api(aiohttp_server):
    """
    Factory for a fake remote API answering every probe with one status.

    The returned FakeRemote has a `requests` list recording
    (method, path, authorization, content_type, body) for each hit.
    """
    async def factory(status: int):
        requests = []

        async def handler(request: web.Request) -> web.Response:
            requests.append((
                request.method,
                request.path,
                request.headers.get("Authorization"),
                request.headers.get("Content-Type"),
                await request.text(),
            ))
            return web.Response(status=status)

        app = web.Application()
        app.router.add_post("/api/generate-message", handler)
        app.router.add_get("/api/db/conversations", handler)
        server = await aiohttp_server(app)
        return FakeRemote(server, requests)

    return factory
