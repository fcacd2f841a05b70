# site_mapper/crawler/normalizer.py
"""
URL normalization: turns an address into the canonical key used for dedup.
"""
from __future__ import annotations

from urllib.parse import urlsplit

__all__ = ("UrlNormalizer", "normalize_url", "site_host")


class UrlNormalizer:
    """Canonicalizes URLs into comparison keys.

    Rules, in order: lower-case scheme, host and path; strip one leading
    ``www.`` from the host; strip trailing ``/`` from the path unless the path
    is the root; drop the fragment and, when ``ignore_query`` is set, the
    query string. An engine uses exactly one instance for a run so registry,
    visited and site-map lookups share the same discipline.

    Never raises: unparsable input degrades to the lower-cased raw string.
    """

    __slots__ = ("ignore_query",)

    def __init__(self, ignore_query: bool = True) -> None:
        self.ignore_query = ignore_query

    def __call__(self, url: str) -> str:
        return self.normalize(url)

    def normalize(self, url: str) -> str:
        raw = (url or "").strip()
        try:
            parts = urlsplit(raw)
            host = (parts.hostname or "").lower()
            port = parts.port
        except ValueError:
            return raw.lower()
        if not parts.scheme or not host:
            return raw.lower()

        if host.startswith("www."):
            host = host[4:]
        netloc = f"{host}:{port}" if port is not None else host

        path = parts.path.lower().rstrip("/") or "/"
        key = f"{parts.scheme.lower()}://{netloc}{path}"
        if parts.query and not self.ignore_query:
            key = f"{key}?{parts.query}"
        return key

    def __repr__(self) -> str:
        return f"{type(self).__name__}(ignore_query={self.ignore_query!r})"


_default = UrlNormalizer()


def normalize_url(url: str) -> str:
    """Normalize with the default discipline (query string dropped)."""
    return _default.normalize(url)


def site_host(url: str) -> str:
    """Lower-cased host without a leading ``www.``; empty for unparsable input."""
    try:
        host = (urlsplit((url or "").strip()).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host
