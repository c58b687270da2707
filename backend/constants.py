"""Shared constants for the weather proxy backend.

Upstream hosts, fixed headers and cache timing live here; there is no
environment configuration surface.
"""

from __future__ import annotations

# Server
PORT: int = 8000
HOST: str = "0.0.0.0"

# Response cache
CACHE_TTL_SECONDS: float = 5 * 60.0
CACHE_SWEEP_INTERVAL_SECONDS: float = CACHE_TTL_SECONDS

# Mobile Safari UA; several upstreams reject non-browser clients
IPHONE_USER_AGENT: str = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)

# Plain forwarding targets: (inbound prefix, stripped prefix, upstream base)
FORWARD_TARGETS: tuple[tuple[str, str, str], ...] = (
    ("/mpf/", "/mpf", "https://mpf.weather.com.cn"),
    ("/wtr-v3/", "/wtr-v3", "https://weatherapi.market.xiaomi.com/wtr-v3"),
    ("/d3/", "/d3", "https://d3.weather.com.cn"),
    ("/d4/", "/d4", "https://d4.weather.com.cn"),
)

# Weather map bootstrap page
WEATHERMAP_URL: str = (
    "https://m.weathercn.com/weatherMap.do?partner=1000001071_hfaw&language=zh-cn"
    "&id=2332685&p_source=&p_type=jump&seadId=&cpoikey="
)
WEATHERMAP_HOST: str = "m.weathercn.com"

# Duanlin (nowcast precipitation)
DUANLIN_IMAGE_BASE: str = "https://img.weather.com.cn"
DUANLIN_UPSTREAM_PREFIX: str = "/mpfv3"
DUANLIN_REFERER: str = "https://m.weathercn.com/"
DUANLIN_PICS_LOCATION_RANGE: dict[str, float] = {
    "bottom_lat": 10.160640206803123,
    "left_lon": 73.44630749105424,
    "top_lat": 53.560640206803123,
    "right_lon": 135.09,
}
DUANLIN_OBSERVED: int = 1
DUANLIN_FORECAST: int = 2

# Image proxy
IMAGE_ACCEPT: str = "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8"
IMAGE_CACHE_CONTROL: str = "public, max-age=86400"
IMAGE_FALLBACK_CONTENT_TYPE: str = "image/png"

# Inbound request headers never passed upstream verbatim
FORWARD_DROP_REQUEST_HEADERS: frozenset[str] = frozenset({"connection", "content-length", "accept-encoding"})

# Upstream response headers the proxy recomputes (body is already decoded)
HOP_BY_HOP_RESPONSE_HEADERS: frozenset[str] = frozenset({
    "connection",
    "keep-alive",
    "transfer-encoding",
    "content-encoding",
    "content-length",
})
