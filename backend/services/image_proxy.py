"""Resolve ``/img/<token>`` back to the upstream image and fetch it."""

from __future__ import annotations

import httpx

from constants import IMAGE_ACCEPT, IMAGE_FALLBACK_CONTENT_TYPE, IPHONE_USER_AGENT
from errors import InvalidImageToken, UpstreamFetchError
from response_headers import build_image_headers
from services.forwarder import UpstreamReply
from url_codec import decode, png_to_webp, strip_annotation

IMG_PREFIX = "/img/"


def resolve_image_url(token: str) -> str:
    url = decode(token)
    if url is None:
        raise InvalidImageToken("Invalid image URL")
    return png_to_webp(strip_annotation(url))


async def fetch_image(client: httpx.AsyncClient, token: str, logger) -> UpstreamReply:
    url = resolve_image_url(token)
    logger.debug(f"image fetch {url}")
    try:
        res = await client.get(url, headers={"User-Agent": IPHONE_USER_AGENT, "accept": IMAGE_ACCEPT})
    except httpx.HTTPError as exc:
        raise UpstreamFetchError(f"{type(exc).__name__}: {exc}") from exc

    content_type = res.headers.get("content-type") or IMAGE_FALLBACK_CONTENT_TYPE
    return UpstreamReply(status=res.status_code, headers=build_image_headers(content_type), body=res.content)
