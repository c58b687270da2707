"""Shared pytest fixtures: fake clock, mock upstream transport, app client,
and the live-server fixture used by the integration tests."""

from __future__ import annotations

import os
import sys

import httpx
import pytest
import requests
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from app import create_app  # noqa: E402
from cache_state import ResponseCache  # noqa: E402

PROXY_BASE = os.environ.get("WEATHERPROXY_BASE", "http://127.0.0.1:8000")


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """Records every outbound request and answers via a swappable handler."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler = lambda request: httpx.Response(200, text="ok")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(clock=clock)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def client(cache, upstream):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    app = create_app(cache=cache, http_client=http_client)
    with TestClient(app) as c:
        yield c


def _reachable(url: str, timeout: float = 3.0) -> bool:
    try:
        r = requests.get(url + "/__probe__", timeout=timeout)
        return r.status_code == 404 and r.text == "Not Found"
    except Exception:
        return False


@pytest.fixture(scope="session")
def proxy_base():
    """URL of a running weather proxy. Skip session if not reachable."""
    if not _reachable(PROXY_BASE):
        pytest.skip(f"Weather proxy not reachable at {PROXY_BASE} — set WEATHERPROXY_BASE or start backend.")
    return PROXY_BASE
