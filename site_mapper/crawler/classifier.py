# site_mapper/crawler/classifier.py
"""
Classification of fetch outcomes and redirect resolution.

The classifier turns a :class:`FetchResponse` (plus the page analyzer's view
of the body) into exactly one terminal :class:`LinkStatus`:

* ``ok``       – 2xx, analyzer decides leaf flag and links;
* ``redirect`` – 3xx whose target is not a soft-404; the target becomes the
  single discovered link so the chain is followed;
* ``soft-404`` – 3xx that the soft-404 rule flags (by default: bounce to the
  site root from a non-root request);
* ``broken``   – HTTP 404 or a 3xx without a usable ``Location``;
* ``error``    – anything else, including transport failures handled by the
  engine.
"""
from __future__ import annotations

from typing import Optional, Protocol
from urllib.parse import urljoin, urlsplit

from site_mapper.crawler.analyzer import PageAnalyzer
from site_mapper.crawler.models import AnalysisResult, FetchResponse, LinkStatus
from site_mapper.crawler.normalizer import UrlNormalizer
from site_mapper.logger import logger

__all__ = (
    "SoftNotFoundRule",
    "RedirectToRootRule",
    "classify_response",
    "resolve_redirect",
)


class SoftNotFoundRule(Protocol):
    """Decides whether a redirect masks a dead page."""

    def __call__(self, request_url: str, target_url: str, root_url: str) -> bool: ...


class RedirectToRootRule:
    """A redirect to the site root from any non-root request is a soft-404."""

    def __init__(self, normalizer: UrlNormalizer) -> None:
        self._normalize = normalizer

    def __call__(self, request_url: str, target_url: str, root_url: str) -> bool:
        root_key = self._normalize(root_url)
        return self._normalize(target_url) == root_key and self._normalize(request_url) != root_key


def resolve_redirect(
    request_url: str,
    location: Optional[str],
    root_url: str,
    rule: Optional[SoftNotFoundRule],
) -> AnalysisResult:
    """Classify a 3xx outcome by its ``Location`` header."""
    if not location or not location.strip():
        return AnalysisResult(status=LinkStatus.BROKEN)
    target = urljoin(request_url, location.strip())
    if urlsplit(target).scheme not in ("http", "https"):
        return AnalysisResult(status=LinkStatus.ERROR, redirect_location=target)
    if rule is not None and rule(request_url, target, root_url):
        return AnalysisResult(status=LinkStatus.SOFT_404, redirect_location=target)
    return AnalysisResult(
        status=LinkStatus.REDIRECT,
        is_leaf=False,
        links=[target],
        redirect_location=target,
    )


def classify_response(
    response: FetchResponse,
    root_url: str,
    analyzer: Optional[PageAnalyzer],
    rule: Optional[SoftNotFoundRule],
) -> AnalysisResult:
    """Map one fetch outcome onto a terminal status.

    Deterministic for a given response: the same input always yields the same
    status.
    """
    code = response.status_code
    if response.is_redirect:
        result = resolve_redirect(response.url, response.location, root_url, rule)
    elif code == 404:
        result = AnalysisResult(status=LinkStatus.BROKEN)
    elif 200 <= code < 300:
        if analyzer is None or not response.is_html or response.text is None:
            result = AnalysisResult(status=LinkStatus.OK, is_leaf=True)
        else:
            page = analyzer.analyze(response.url, response)
            links = [] if page.is_leaf else list(page.links)
            result = AnalysisResult(status=LinkStatus.OK, is_leaf=page.is_leaf, links=links)
    else:
        result = AnalysisResult(status=LinkStatus.ERROR)
    logger.debug("Classified %s (HTTP %d) -> %s", response.url, code, result.status.value)
    return result
