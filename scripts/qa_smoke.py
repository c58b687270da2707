#!/usr/bin/env python3
"""Weather proxy smoke checks against a running server.

Usage:
  python3 scripts/qa_smoke.py [--base http://127.0.0.1:8000] [--upstream]

Without --upstream only the proxy-local behaviour is checked (routing,
token rejection); with it the weather map and an image round trip go out to
the real upstreams.
"""

from __future__ import annotations

import argparse
import base64
import time

import requests


def assert_ok(cond: bool, msg: str):
    if not cond:
        raise AssertionError(msg)


def check_local(base: str):
    r = requests.get(base + "/definitely/not/routed", timeout=20)
    assert_ok(r.status_code == 404, f"unrouted path returned {r.status_code}")
    assert_ok(r.text == "Not Found", f"unrouted path body {r.text!r}")
    assert_ok("X-Request-Id" in r.headers, "missing X-Request-Id header")

    r = requests.get(base + "/img/!!!not-a-token", timeout=20)
    assert_ok(r.status_code == 400, f"invalid image token returned {r.status_code}")

    r = requests.post(base + "/weathercn-data/", timeout=20)
    assert_ok(r.status_code == 404, f"POST /weathercn-data/ returned {r.status_code}")


def check_upstream(base: str):
    t0 = time.perf_counter()
    r = requests.get(base + "/weathercn-data/", timeout=60)
    first_ms = (time.perf_counter() - t0) * 1000
    assert_ok(r.status_code == 200, f"/weathercn-data/ returned {r.status_code}: {r.text[:200]}")
    data = r.json()
    assert_ok(isinstance(data, dict) and data, "/weathercn-data/ returned an empty bundle")

    urls = []
    for entry in data.values():
        pics = entry.get("pic") if entry.get("pic") is not None else entry.get("result", {}).get("picture_url", [])
        urls.extend(pics)
    assert_ok(urls, "weather map bundle carries no image URLs")
    assert_ok(all("/img/" in u for u in urls), "weather map image URLs were not rewritten")

    r2 = requests.get(base + "/weathercn-data/", timeout=60)
    assert_ok(r2.status_code == 200, "cached /weathercn-data/ failed")
    assert_ok("x-cache-date" in r2.headers, "second /weathercn-data/ was not served from cache")

    token = urls[0].split("/img/", 1)[1]
    ri = requests.get(base + "/img/" + token, timeout=60)
    assert_ok(ri.status_code == 200, f"image proxy returned {ri.status_code}")
    assert_ok(ri.headers.get("content-type", "").startswith("image/"), "image proxy content-type is not an image")

    decoded = base64.b64decode(token[2:]).decode("utf-8")
    print(f"weather map: {len(data)} entries, {len(urls)} images, first fetch {first_ms:.0f}ms, sample {decoded[:80]}")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--base", default="http://127.0.0.1:8000")
    ap.add_argument("--upstream", action="store_true", help="also exercise real upstream services")
    args = ap.parse_args()
    base = args.base.rstrip("/")

    check_local(base)
    if args.upstream:
        check_upstream(base)

    print("PASS: weather proxy smoke checks passed")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as e:
        print(f"FAIL: {e}")
        raise
