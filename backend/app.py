#!/usr/bin/env python3
"""Weather proxy FastAPI backend — one host in front of the weather.com.cn,
weathercn and Xiaomi weather upstreams, with image URL rewriting and a
short-lived response cache."""

import asyncio
import os
import sys
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

# Add backend dir to path for flat module imports
sys.path.insert(0, os.path.dirname(__file__))
from logging_config import setup_logging
from cache_state import ResponseCache, run_sweep_loop
from constants import CACHE_SWEEP_INTERVAL_SECONDS, HOST, PORT
from errors import ProxyError
from routers.proxy import build_proxy_router
from services.app_state import AppState

logger = setup_logging(__name__, level="INFO")


def create_app(
    cache: Optional[ResponseCache] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    sweep_interval_seconds: float = CACHE_SWEEP_INTERVAL_SECONDS,
) -> FastAPI:
    """Build the proxy app. Tests inject a fake cache clock and a mock transport client."""
    state = AppState(cache=cache if cache is not None else ResponseCache(), http_client=http_client)

    app = FastAPI(
        title="Weather Proxy",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=_lifespan_for(state, sweep_interval_seconds),
    )
    app.state.proxy = state

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]
        return PlainTextResponse(exc.message, status_code=exc.status_code, headers={"X-Request-Id": rid})

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log requests with method, path, status and response time."""
        start_time = time.time()
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-Id"] = request_id
        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} - {duration_ms:.2f}ms - rid={request_id}"
        )
        return response

    app.include_router(build_proxy_router(state=state, logger=logger))
    return app


def _lifespan_for(state: AppState, sweep_interval_seconds: float):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Weather proxy starting")
        state.client()
        state.sweep_task = asyncio.create_task(
            run_sweep_loop(state.cache, logger, interval_seconds=sweep_interval_seconds)
        )
        logger.info(f"Response cache TTL {state.cache.ttl_seconds:.0f}s, sweep every {sweep_interval_seconds:.0f}s")
        try:
            yield
        finally:
            await _shutdown(state)

    return lifespan


async def _shutdown(state: AppState):
    """Cancel the sweep timer and close the outbound client we own."""
    if state.sweep_task is not None:
        state.sweep_task.cancel()
        try:
            await state.sweep_task
        except asyncio.CancelledError:
            pass
        state.sweep_task = None
    if state.owns_http_client and state.http_client is not None:
        await state.http_client.aclose()
        state.http_client = None
    logger.info(f"Weather proxy stopped; cache stats {state.cache.stats()}")


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Server running on http://localhost:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT)
