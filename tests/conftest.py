# File: tests/conftest.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import pytest

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.models import FetchResponse

ROOT = "https://example.com"


@dataclass
class Page:
    """Canned response served by :class:`FakeFetcher`."""

    status_code: int = 200
    links: tuple = ()
    location: Optional[str] = None
    content_type: str = "text/html; charset=utf-8"
    body: Optional[str] = None

    def html(self) -> str:
        if self.body is not None:
            return self.body
        anchors = "".join(f'<a href="{link}">{link}</a>' for link in self.links)
        return f"<html><body><main>{anchors}</main></body></html>"


def page(*links: str, body: Optional[str] = None) -> Page:
    return Page(links=links, body=body)


def redirect(location: Optional[str], code: int = 302) -> Page:
    return Page(status_code=code, location=location, content_type="")


class FakeFetcher:
    """In-memory transport; unknown URLs answer 404.

    Records every requested URL and the peak number of concurrent fetches.
    """

    def __init__(self, pages: Dict[str, Union[Page, BaseException]], delay: float = 0.0) -> None:
        self.pages = pages
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def fetch(self, url: str) -> FetchResponse:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.pages.get(url)
            if isinstance(outcome, BaseException):
                raise outcome
            if outcome is None:
                return FetchResponse(url=url, status_code=404, content_type="text/html")
            text = outcome.html() if 200 <= outcome.status_code < 300 and "html" in outcome.content_type else None
            return FetchResponse(
                url=url,
                status_code=outcome.status_code,
                location=outcome.location,
                content_type=outcome.content_type,
                text=text,
            )
        finally:
            self.active -= 1


@pytest.fixture()
def make_config():
    """Factory for CrawlerConfig with test-friendly defaults."""

    def _make(**overrides) -> CrawlerConfig:
        params = dict(
            base_url=ROOT,
            max_depth=6,
            max_concurrency=4,
            timeout=2.0,
            user_agent="TestAgent/1.0",
        )
        params.update(overrides)
        return CrawlerConfig(**params)

    return _make


@pytest.fixture()
def basic_config(make_config) -> CrawlerConfig:
    return make_config()
