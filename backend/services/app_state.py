from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

import httpx

from cache_state import ResponseCache


def build_http_client(**kwargs) -> httpx.AsyncClient:
    # No outbound timeout: a hung upstream holds the client request open.
    kwargs.setdefault("timeout", None)
    kwargs.setdefault("follow_redirects", True)
    return httpx.AsyncClient(**kwargs)


@dataclass
class AppState:
    # response cache shared by all handlers
    cache: ResponseCache = field(default_factory=ResponseCache)

    # outbound client; created at startup unless injected
    http_client: Optional[httpx.AsyncClient] = None
    owns_http_client: bool = False

    # periodic cache sweep
    sweep_task: Optional[asyncio.Task] = None

    def client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            self.http_client = build_http_client()
            self.owns_http_client = True
        return self.http_client
