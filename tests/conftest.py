"""Shared test fixtures: a fake monerod behind httpx.MockTransport."""

from typing import Callable

import httpx
import pytest

from monerod_exporter.client import MonerodClient
from tests.helpers import BASE_URL, FakeDaemon


@pytest.fixture
def fake_daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def daemon_client():
    """Factory fixture: MonerodClient wired to a handler through MockTransport."""

    def _client(handler: Callable[[httpx.Request], httpx.Response]) -> MonerodClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
        return MonerodClient(http_client)

    return _client


@pytest.fixture
def client(fake_daemon, daemon_client) -> MonerodClient:
    return daemon_client(fake_daemon.handle)


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for an ASGI app."""

    def _get_client(app):
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    return _get_client
