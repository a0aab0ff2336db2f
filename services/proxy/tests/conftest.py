"""Shared fixtures: a mock ElevenLabs upstream and app factory"""

from typing import Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from eleven_proxy.config import Settings
from eleven_proxy.main import create_app

UPSTREAM_BASE = "http://eleven.local"


def make_settings(**overrides) -> Settings:
    values = dict(
        eleven_api_key="test-key",
        eleven_base_url=UPSTREAM_BASE,
        eleven_proxy_secret="",
        metrics_enabled=True,
        debug=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class MockUpstream:
    """Records every upstream request and answers with a pluggable handler"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Optional[Callable[[httpx.Request], httpx.Response]] = None

    @property
    def calls(self) -> int:
        return len(self.requests)

    def respond(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is None:
            return httpx.Response(200, headers={"content-type": "audio/mpeg"}, content=b"ID3audio")
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture()
def upstream() -> MockUpstream:
    return MockUpstream()


@pytest.fixture()
def client_factory(upstream):
    clients = []

    def build(**overrides) -> TestClient:
        app = create_app(make_settings(**overrides), transport=upstream.transport)
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield build

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture()
def client(client_factory) -> TestClient:
    return client_factory()
