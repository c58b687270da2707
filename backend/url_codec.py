"""Image URL obfuscation tokens.

Token scheme: ``{two random letters}{base64(utf8(url))}``, served under
``/img/<token>``. The letter prefix only breaks CDN/cache collisions between
identical URLs and is thrown away on decode.

Decoding also accepts a token that is simply a percent-encoded absolute URL;
older clients still hold links in that form.
"""

from __future__ import annotations

import base64
import binascii
import random
import re
import string
from typing import Optional
from urllib.parse import unquote

PREFIX_LETTERS = string.ascii_lowercase + string.ascii_uppercase
PREFIX_LENGTH = 2
ANNOTATION_MARKER = "$$"

_SCHEMES = ("http://", "https://")
_BAD_PERCENT_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _random_prefix(rng=random) -> str:
    return "".join(rng.choice(PREFIX_LETTERS) for _ in range(PREFIX_LENGTH))


def encode(url: str, rng=random) -> str:
    """Return an opaque token for *url*."""
    payload = base64.b64encode(url.encode("utf-8")).decode("ascii")
    return _random_prefix(rng) + payload


def proxy_image_url(origin: str, url: str, rng=random) -> str:
    """Return the proxy address that resolves back to *url*."""
    proxied = f"{origin}/img/{encode(url, rng=rng)}"
    return proxied[1:] if proxied.startswith("/") else proxied


def _percent_decoded(token: str) -> Optional[str]:
    if _BAD_PERCENT_ESCAPE.search(token):
        return None
    try:
        return unquote(token, errors="strict")
    except UnicodeDecodeError:
        return None


def _base64_decoded(token: str) -> Optional[str]:
    payload = token[PREFIX_LENGTH:]
    if not payload:
        return None
    payload += "=" * (-len(payload) % 4)
    try:
        return base64.b64decode(payload, validate=True).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None


def decode(token: str) -> Optional[str]:
    """Resolve *token* back to an absolute URL, or None if it is not one of ours."""
    candidate = _percent_decoded(token)
    if candidate is not None and candidate.startswith(_SCHEMES):
        return candidate
    candidate = _base64_decoded(token)
    if candidate is not None and candidate.startswith(_SCHEMES):
        return candidate
    return None


def strip_annotation(url: str) -> str:
    """Drop the trailing ``$$...`` annotation the weather map appends to image URLs."""
    return url.split(ANNOTATION_MARKER, 1)[0]


def png_to_webp(url: str) -> str:
    # Paths under /webp/ are served in both formats; prefer webp.
    if "/webp/" in url and url.endswith(".png"):
        return url[: -len(".png")] + ".webp"
    return url
