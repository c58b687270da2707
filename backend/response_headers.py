"""Header scrubbing and response builders shared by the proxy handlers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Tuple
from urllib.parse import urlsplit

from fastapi.responses import Response

from constants import (
    FORWARD_DROP_REQUEST_HEADERS,
    HOP_BY_HOP_RESPONSE_HEADERS,
    IMAGE_CACHE_CONTROL,
    IPHONE_USER_AGENT,
)

HeaderList = List[Tuple[str, str]]


def _without(headers: Iterable[Tuple[str, str]], names) -> HeaderList:
    return [(k, v) for k, v in headers if k.lower() not in names]


def build_forward_headers(inbound: Iterable[Tuple[str, str]], target: str) -> HeaderList:
    """Clone inbound headers for an upstream call.

    User-Agent is forced to the mobile browser string and Host is pinned to
    the target; per-hop and encoding-negotiation headers are dropped.
    """
    headers = _without(inbound, FORWARD_DROP_REQUEST_HEADERS | {"user-agent", "host"})
    headers.append(("user-agent", IPHONE_USER_AGENT))
    headers.append(("host", urlsplit(target).netloc))
    return headers


def scrub_upstream_headers(headers: Iterable[Tuple[str, str]]) -> HeaderList:
    """Drop headers that no longer describe the (decoded, re-framed) body."""
    return _without(headers, HOP_BY_HOP_RESPONSE_HEADERS)


def build_image_headers(content_type: str) -> HeaderList:
    return [
        ("content-type", content_type),
        ("cache-control", IMAGE_CACHE_CONTROL),
    ]


def with_cache_date(headers: HeaderList, captured_at: float) -> HeaderList:
    stamp = datetime.fromtimestamp(captured_at, tz=timezone.utc).isoformat().replace("+00:00", "Z")
    return _without(headers, {"x-cache-date"}) + [("x-cache-date", stamp)]


def build_raw_response(body: bytes, status: int, headers: Iterable[Tuple[str, str]]) -> Response:
    """Response carrying *headers* verbatim, repeated names included.

    content-length is always recomputed from *body*.
    """
    response = Response(content=body, status_code=status)
    raw = [
        (k.lower().encode("latin-1"), v.encode("latin-1"))
        for k, v in _without(headers, {"content-length"})
    ]
    raw.append((b"content-length", str(len(body)).encode("latin-1")))
    response.raw_headers = raw
    return response


def response_header_pairs(response: Response) -> HeaderList:
    return [(k.decode("latin-1"), v.decode("latin-1")) for k, v in response.raw_headers]
