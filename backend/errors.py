"""Proxy error taxonomy.

Each error carries the HTTP status the proxy answers with; the app-level
exception handler turns them into plain-text responses.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for failures that map onto a specific HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UpstreamFetchError(ProxyError):
    """Network, DNS or transport failure while talking to an upstream."""

    status_code = 502


class MalformedUpstreamData(ProxyError):
    """The upstream answered, but not with the structure we need."""

    status_code = 500


class InvalidImageToken(ProxyError):
    """An /img/ token that neither decoding stage could resolve."""

    status_code = 400
