"""Weather-map bootstrap data: pull the ``let DATA = {...};`` object out of
the upstream HTML page and point every image in it back at this proxy.

The literal is parsed with json5, never evaluated, since the page is
remote content. Entries come in two shapes, told apart by a presence check:

* ``HasDirectPicList``       -> ``{"pic": [url, ...], ...}``
* ``HasNestedResultPicList`` -> ``{"result": {"picture_url": [url, ...]}, ...}``
"""

from __future__ import annotations

import enum
import re
from typing import Any, Dict, List, Tuple

import httpx
import json5

from constants import IPHONE_USER_AGENT, WEATHERMAP_HOST, WEATHERMAP_URL
from errors import MalformedUpstreamData, UpstreamFetchError
from url_codec import proxy_image_url

DATA_PATTERN = re.compile(r"let\s+DATA\s*=\s*(\{[\s\S]+?\});")


class PictureShape(enum.Enum):
    HAS_DIRECT_PIC_LIST = "pic"
    HAS_NESTED_RESULT_PIC_LIST = "result.picture_url"


def extract_data_literal(html: str) -> str:
    match = DATA_PATTERN.search(html)
    if not match:
        raise MalformedUpstreamData("DATA not found")
    return match.group(1)


def parse_bundle(literal: str) -> Dict[str, Any]:
    try:
        bundle = json5.loads(literal)
    except ValueError as exc:
        raise MalformedUpstreamData(f"DATA is not a parseable object literal: {exc}") from exc
    if not isinstance(bundle, dict):
        raise MalformedUpstreamData("DATA is not an object")
    return bundle


def picture_slot(key: str, entry: Any) -> Tuple[PictureShape, List[Any]]:
    """Return the shape of *entry* and the URL list to rewrite in place."""
    if isinstance(entry, dict) and entry.get("pic") is not None:
        pics = entry["pic"]
        if isinstance(pics, list):
            return PictureShape.HAS_DIRECT_PIC_LIST, pics
    elif isinstance(entry, dict):
        result = entry.get("result")
        if isinstance(result, dict) and isinstance(result.get("picture_url"), list):
            return PictureShape.HAS_NESTED_RESULT_PIC_LIST, result["picture_url"]
    raise MalformedUpstreamData(f"DATA entry {key!r} has neither pic nor result.picture_url")


def rewrite_bundle(bundle: Dict[str, Any], origin: str) -> Dict[str, Any]:
    for key, entry in bundle.items():
        _, urls = picture_slot(key, entry)
        for i, url in enumerate(urls):
            urls[i] = proxy_image_url(origin, str(url))
    return bundle


async def fetch_weathermap_bundle(client: httpx.AsyncClient, origin: str, logger) -> Dict[str, Any]:
    try:
        res = await client.get(
            WEATHERMAP_URL,
            headers={"User-Agent": IPHONE_USER_AGENT, "Host": WEATHERMAP_HOST},
        )
    except httpx.HTTPError as exc:
        raise UpstreamFetchError(f"{type(exc).__name__}: {exc}") from exc

    bundle = parse_bundle(extract_data_literal(res.text))
    logger.info(f"Weather map DATA parsed: {len(bundle)} entries")
    return rewrite_bundle(bundle, origin)
