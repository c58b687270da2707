"""Duanlin (nowcast precipitation) time series reconstruction.

Upstream lists radar frames newest-last across ``value`` items and
newest-first within each item's ``time``/``path`` lists; the client wants one
flat, chronologically ascending series of (timestamp, image) pairs, each
tagged observed or forecast relative to ``stime``.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Tuple

import httpx

from constants import (
    DUANLIN_FORECAST,
    DUANLIN_IMAGE_BASE,
    DUANLIN_OBSERVED,
    DUANLIN_PICS_LOCATION_RANGE,
    DUANLIN_REFERER,
    DUANLIN_UPSTREAM_PREFIX,
    IPHONE_USER_AGENT,
)
from errors import MalformedUpstreamData, UpstreamFetchError
from url_codec import proxy_image_url

DUANLIN_PREFIX = "/duanlin"
IMAGE_URL_BASE = DUANLIN_IMAGE_BASE + DUANLIN_UPSTREAM_PREFIX + "/"

_NON_DIGITS = re.compile(r"\D")


def upstream_target(path_query: str) -> str:
    return DUANLIN_IMAGE_BASE + path_query.replace(DUANLIN_PREFIX, DUANLIN_UPSTREAM_PREFIX, 1)


def parse_payload(text: str) -> Dict[str, Any]:
    """Decode the JSON object starting at the first ``{``; anything after it is ignored."""
    start = text.find("{")
    if start < 0:
        raise MalformedUpstreamData("no JSON object in duanlin payload")
    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as exc:
        raise MalformedUpstreamData(f"invalid duanlin JSON: {exc}") from exc
    if not isinstance(data.get("value"), list):
        raise MalformedUpstreamData("duanlin payload has no value list")
    return data


def build_series(values: List[Dict[str, Any]], origin: str, logger=None) -> Tuple[List[str], List[str]]:
    times: List[str] = []
    pictures: List[str] = []
    for item in reversed(values):
        date_prefix = str(item["date"][0])[:8]
        item_times = list(item["time"])
        item_paths = list(item["path"])
        if logger is not None and len(item_times) != len(item_paths):
            logger.warning(
                f"duanlin item {date_prefix}: {len(item_times)} times vs {len(item_paths)} paths, truncating"
            )
        # both lists run newest-first; flip each, then pair from the oldest end
        for t, path in zip(reversed(item_times), reversed(item_paths)):
            times.append(f"{date_prefix}{t}")
            pictures.append(proxy_image_url(origin, IMAGE_URL_BASE + str(path)))
    return times, pictures


def digits(value: Any) -> str:
    return _NON_DIGITS.sub("", str(value))


def classify(stime: str, time_value: str) -> int:
    """OBSERVED when the reference instant is later than *time_value*, else FORECAST.

    Digit strings are right-padded to a common width so ``YYYYMMDDHH`` compares
    correctly against ``YYYYMMDDHHMM``.
    """
    ref = digits(stime)
    cur = digits(time_value)
    width = max(len(ref), len(cur), 1)
    ref_n = int(ref.ljust(width, "0"))
    cur_n = int(cur.ljust(width, "0"))
    return DUANLIN_OBSERVED if ref_n > cur_n else DUANLIN_FORECAST


def build_rain_dl(data: Dict[str, Any], origin: str, logger=None) -> Dict[str, Any]:
    try:
        times, pictures = build_series(data["value"], origin, logger)
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedUpstreamData(f"unexpected duanlin item layout: {exc!r}") from exc
    if "stime" not in data:
        raise MalformedUpstreamData("duanlin payload has no stime")
    stime = data["stime"]
    return {
        "rain_dl": {
            "time": {
                "obstime": data.get("obstime"),
                "stime": stime,
            },
            "pics_location_range": dict(DUANLIN_PICS_LOCATION_RANGE),
            "result": {
                "picture_url": pictures,
                "forecast_time_list": times,
                "type": [classify(stime, t) for t in times],
            },
            "pic_type": "precipitation",
        }
    }


async def fetch_duanlin(client: httpx.AsyncClient, path_query: str, origin: str, logger) -> Dict[str, Any]:
    target = upstream_target(path_query)
    logger.info(f"duanlin fetch {target}")
    try:
        res = await client.get(
            target,
            headers={"User-Agent": IPHONE_USER_AGENT, "Referer": DUANLIN_REFERER},
        )
    except httpx.HTTPError as exc:
        raise UpstreamFetchError(f"{type(exc).__name__}: {exc}") from exc
    return build_rain_dl(parse_payload(res.text), origin, logger)
