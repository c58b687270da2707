"""Generic upstream forwarding for the plain proxy prefixes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import httpx

from constants import FORWARD_DROP_REQUEST_HEADERS
from errors import UpstreamFetchError
from response_headers import build_forward_headers, scrub_upstream_headers

BODYLESS_METHODS = frozenset({"GET", "HEAD"})


@dataclass
class UpstreamReply:
    status: int
    headers: List[Tuple[str, str]]
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def raw_header_pairs(headers: httpx.Headers) -> List[Tuple[str, str]]:
    return [(k.decode("latin-1"), v.decode("latin-1")) for k, v in headers.raw]


async def forward(
    client: httpx.AsyncClient,
    method: str,
    headers: Iterable[Tuple[str, str]],
    body: Optional[bytes],
    target: str,
) -> UpstreamReply:
    """Replay an inbound request against *target*.

    Raises UpstreamFetchError when the upstream cannot be reached at all;
    any HTTP status the upstream answers with is passed through.
    """
    method = method.upper()
    request = client.build_request(
        method,
        target,
        headers=build_forward_headers(headers, target),
        content=body if method not in BODYLESS_METHODS else None,
    )
    # httpx adds its own connection/accept-encoding defaults; the upstream
    # must not see them either.
    for name in FORWARD_DROP_REQUEST_HEADERS - {"content-length"}:
        if name in request.headers:
            del request.headers[name]

    try:
        res = await client.send(request)
    except httpx.HTTPError as exc:
        raise UpstreamFetchError(f"{type(exc).__name__}: {exc}") from exc

    return UpstreamReply(
        status=res.status_code,
        headers=scrub_upstream_headers(raw_header_pairs(res.headers)),
        body=res.content,
    )
