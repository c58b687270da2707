"""Catch-all dispatcher: cache lookup, prefix routing, cache capture.

Handler bodies are defined inside build_proxy_router() so they close over
the injected AppState (cache + outbound client) instead of module globals.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from cache_state import cache_key
from constants import FORWARD_TARGETS
from errors import InvalidImageToken, MalformedUpstreamData, ProxyError, UpstreamFetchError
from response_headers import (
    build_raw_response,
    response_header_pairs,
    with_cache_date,
)
from services.app_state import AppState
from services.duanlin import fetch_duanlin
from services.forwarder import BODYLESS_METHODS, forward
from services.image_proxy import IMG_PREFIX, fetch_image
from services.weathermap import fetch_weathermap_bundle

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@dataclass
class ProxyRequest:
    method: str
    path: str  # raw (still percent-encoded) path
    path_query: str
    headers: List[Tuple[str, str]]
    body: Optional[bytes]
    origin: str

    @property
    def key(self) -> str:
        return cache_key(self.method, self.path_query)


@dataclass(frozen=True)
class Rule:
    pattern: str
    handler: Callable[[ProxyRequest], Awaitable[Response]]
    exact: bool = False
    methods: Optional[frozenset] = None

    def matches(self, req: ProxyRequest) -> bool:
        if self.methods is not None and req.method not in self.methods:
            return False
        if self.exact:
            return req.path_query == self.pattern
        return req.path_query.startswith(self.pattern)


def match_rule(rules: List[Rule], req: ProxyRequest) -> Optional[Rule]:
    for rule in rules:
        if rule.matches(req):
            return rule
    return None


async def read_proxy_request(request: Request) -> ProxyRequest:
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    method = request.method.upper()
    body = None if method in BODYLESS_METHODS else await request.body()
    return ProxyRequest(
        method=method,
        path=path,
        path_query=f"{path}?{query}" if query else path,
        headers=[(k.decode("latin-1"), v.decode("latin-1")) for k, v in request.headers.raw],
        body=body,
        origin=str(request.base_url).rstrip("/"),
    )


def build_proxy_router(*, state: AppState, logger) -> APIRouter:
    router = APIRouter()

    # ── plain forwarding ─────────────────────────────────────────────────────

    def make_forward_handler(strip: str, upstream_base: str):
        async def handle_forward(req: ProxyRequest) -> Response:
            target = upstream_base + req.path_query.replace(strip, "", 1)
            logger.info(f"forward {req.method} {req.path_query} -> {target}")
            try:
                reply = await forward(state.client(), req.method, req.headers, req.body, target)
            except UpstreamFetchError as exc:
                logger.warning(f"Proxy error for {target}: {exc.message}")
                raise UpstreamFetchError(f"Proxy error: {exc.message}") from exc
            except Exception as exc:
                # every forwarding failure answers 502, not only transport errors
                logger.exception(f"Proxy error for {target}: {exc}")
                raise UpstreamFetchError(f"Proxy error: {exc}") from exc
            return build_raw_response(reply.body, reply.status, reply.headers)

        return handle_forward

    # ── transformers ─────────────────────────────────────────────────────────

    async def handle_weathermap(req: ProxyRequest) -> Response:
        try:
            bundle = await fetch_weathermap_bundle(state.client(), req.origin, logger)
        except MalformedUpstreamData as exc:
            logger.warning(f"Weather map data rejected: {exc.message}")
            raise
        except Exception as exc:
            logger.exception(f"Error fetching weather data: {exc}")
            raise ProxyError(f"Error fetching weather data: {exc}", 500) from exc
        return JSONResponse(bundle)

    async def handle_duanlin(req: ProxyRequest) -> Response:
        try:
            payload = await fetch_duanlin(state.client(), req.path_query, req.origin, logger)
        except Exception as exc:
            logger.exception(f"Error processing duanlin data: {exc}")
            raise ProxyError(f"Error processing duanlin data: {exc}", 500) from exc
        return JSONResponse(payload)

    async def handle_image(req: ProxyRequest) -> Response:
        token = req.path[len(IMG_PREFIX):]
        try:
            reply = await fetch_image(state.client(), token, logger)
        except InvalidImageToken:
            logger.warning(f"Invalid image token: {token[:80]}")
            raise
        except Exception as exc:
            logger.exception(f"Error proxying image: {exc}")
            raise ProxyError(f"Error proxying image: {exc}", 500) from exc
        return build_raw_response(reply.body, reply.status, reply.headers)

    # Prefixes are disjoint, so order does not change the outcome.
    rules: List[Rule] = [
        Rule("/weathercn-data/", handle_weathermap, exact=True, methods=frozenset({"GET"})),
        Rule("/duanlin/", handle_duanlin),
        Rule(IMG_PREFIX, handle_image),
    ]
    rules.extend(Rule(prefix, make_forward_handler(strip, base)) for prefix, strip, base in FORWARD_TARGETS)

    # ── cache capture ────────────────────────────────────────────────────────

    def replay(req: ProxyRequest) -> Optional[Response]:
        entry = state.cache.get(req.key)
        if entry is None:
            return None
        logger.debug(f"cache hit {req.key}")
        return build_raw_response(entry.body, entry.status, with_cache_date(entry.headers, entry.captured_at))

    def capture(req: ProxyRequest, response: Response) -> None:
        if req.method != "GET" or not 200 <= response.status_code < 300:
            return
        headers = [(k, v) for k, v in response_header_pairs(response) if k != "content-length"]
        state.cache.store(req.key, body=response.body, status=response.status_code, headers=headers)

    async def dispatch(request: Request, full_path: str):
        req = await read_proxy_request(request)
        try:
            if req.method == "GET":
                cached = replay(req)
                if cached is not None:
                    return cached

            rule = match_rule(rules, req)
            if rule is None:
                return PlainTextResponse("Not Found", status_code=404)

            response = await rule.handler(req)
            capture(req, response)
            return response
        except ProxyError:
            raise
        except Exception as exc:
            logger.exception(f"Request handling error {req.method} {req.path_query}: {exc}")
            return PlainTextResponse(f"Server Error: {exc}", status_code=500)

    router.add_api_route(
        "/{full_path:path}",
        dispatch,
        methods=PROXY_METHODS,
        include_in_schema=False,
    )
    return router
