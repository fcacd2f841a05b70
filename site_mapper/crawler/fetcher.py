# site_mapper/crawler/fetcher.py
"""
Fetcher module: HTTP transport with HEAD pre-check, retry/backoff and timeout.
"""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence
from urllib.parse import urlsplit

from aiohttp import ClientError, ClientSession, ClientTimeout, TCPConnector

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.models import FetchResponse, LinkStatus
from site_mapper.crawler.normalizer import UrlNormalizer
from site_mapper.logger import logger

__all__ = ("Fetcher", "HttpFetcher", "CheckResult", "create_session", "RETRY_STATUS")

RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)
_ACCEPT = "text/html,application/xhtml+xml"


def _backoff(attempt: int) -> float:
    # exponential backoff with jitter, cap at 60s
    return min(60, 2**attempt + random.random())


class Fetcher(Protocol):
    """Transport used by the engine; raises on network failure."""

    async def fetch(self, url: str) -> FetchResponse: ...


@dataclass(slots=True)
class CheckResult:
    """Outcome of a single-URL health check that follows redirects."""

    original_url: str
    final_url: Optional[str]
    status_code: Optional[int]
    status: LinkStatus
    is_broken: bool


def create_session(config: CrawlerConfig) -> ClientSession:
    """Build the shared aiohttp session for one engine."""
    return ClientSession(
        timeout=ClientTimeout(total=config.timeout),
        headers={"User-Agent": config.user_agent, "Accept": _ACCEPT},
        connector=TCPConnector(limit=config.max_concurrency, ssl=None if config.verify_ssl else False),
        raise_for_status=False,
    )


class HttpFetcher:
    """Handles HTTP fetching: optional HEAD, GET without redirects, retries on 5xx."""

    def __init__(self, session: ClientSession, config: CrawlerConfig) -> None:
        self.session = session
        self.config = config
        self._normalize = UrlNormalizer(ignore_query=config.ignore_query)

    async def fetch(self, url: str) -> FetchResponse:
        """
        Fetch ``url`` without following redirects.

        Non-HTML bodies are never read. Transport errors propagate to the caller.
        """
        if self.config.head_check:
            head = await self._head(url)
            if head is not None:
                return head

        attempts = 0
        while True:
            async with self.session.get(url, allow_redirects=False) as resp:
                status = resp.status
                ctype = resp.headers.get("Content-Type", "")
                if status in RETRY_STATUS and attempts < self.config.retry_times:
                    attempts += 1
                else:
                    text = None
                    if 200 <= status < 300 and "html" in ctype.lower():
                        text = await resp.text(errors="replace")
                    return FetchResponse(
                        url=url,
                        status_code=status,
                        location=resp.headers.get("Location"),
                        content_type=ctype,
                        text=text,
                    )
            backoff = _backoff(attempts)
            logger.debug("Retry %d/%d for %s after %.2f s", attempts, self.config.retry_times, url, backoff)
            await asyncio.sleep(backoff)

    async def _head(self, url: str) -> FetchResponse | None:
        """Cheap pre-check; ``None`` means fall through to GET."""
        try:
            async with self.session.head(
                url, allow_redirects=False, timeout=ClientTimeout(total=self.config.head_timeout)
            ) as resp:
                ctype = resp.headers.get("Content-Type", "")
                if 300 <= resp.status < 400:
                    return FetchResponse(url, resp.status, resp.headers.get("Location"), ctype)
                if 200 <= resp.status < 300 and "html" not in ctype.lower():
                    return FetchResponse(url, resp.status, None, ctype)
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.debug("HEAD %s failed (%s), falling back to GET", url, exc)
        return None

    async def check(self, url: str) -> CheckResult:
        """Follow redirects and report whether ``url`` is effectively dead."""
        try:
            async with self.session.get(url, allow_redirects=True) as resp:
                final_url = str(resp.url)
                code = resp.status
        except (ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("Check failed for %s: %s", url, exc)
            return CheckResult(url, None, None, LinkStatus.ERROR, True)

        # home of the checked URL itself, not of the configured site
        parts = urlsplit(url)
        root_key = self._normalize(f"{parts.scheme}://{parts.netloc}")
        if code == 404:
            status = LinkStatus.BROKEN
        elif (
            self.config.soft_404_on_root_redirect
            and self._normalize(final_url) == root_key
            and self._normalize(url) != root_key
        ):
            status = LinkStatus.SOFT_404
        elif code != 200:
            status = LinkStatus.ERROR
        elif self._normalize(final_url) != self._normalize(url):
            status = LinkStatus.REDIRECT
        else:
            status = LinkStatus.OK
        return CheckResult(url, final_url, code, status, status.is_problem)
