# site_mapper/crawler/analyzer.py
"""
Default page analyzer: leaf detection, noise removal and link extraction.
"""
from __future__ import annotations

import posixpath
import re
from typing import List, Pattern, Protocol
from urllib.parse import urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_mapper.config import AnalyzerConfig
from site_mapper.crawler.models import FetchResponse, PageAnalysis
from site_mapper.crawler.normalizer import UrlNormalizer, site_host

__all__ = ("PageAnalyzer", "HtmlPageAnalyzer")

_IGNORED_SCHEMES = ("mailto:", "javascript:", "tel:", "data:")


class PageAnalyzer(Protocol):
    """Anything that can turn a fetched document into a leaf flag and links."""

    def analyze(self, url: str, response: FetchResponse) -> PageAnalysis: ...


class HtmlPageAnalyzer:
    """BeautifulSoup-based analyzer driven by :class:`AnalyzerConfig`.

    Only http(s) links on the site host survive; ``www.`` is ignored when
    comparing hosts. The site host is taken from ``root_url`` when given, so a
    page reached through an off-site redirect yields no links; without it the
    host of the analyzed page is used.
    """

    def __init__(
        self,
        settings: AnalyzerConfig,
        normalizer: UrlNormalizer | None = None,
        root_url: str | None = None,
    ) -> None:
        self.settings = settings
        self._root_host = site_host(root_url) if root_url else None
        self._normalize = normalizer or UrlNormalizer()
        self._excluded: List[Pattern[str]] = [
            re.compile(p) for p in settings.excluded_path_patterns
        ]

    def analyze(self, url: str, response: FetchResponse) -> PageAnalysis:
        if not response.is_html or response.text is None:
            return PageAnalysis(is_leaf=True)
        return self.analyze_html(url, response.text)

    def analyze_html(self, url: str, html: str) -> PageAnalysis:
        soup = BeautifulSoup(html, "html.parser")

        if any(soup.select_one(sel) is not None for sel in self.settings.leaf_selectors):
            return PageAnalysis(is_leaf=True)

        for selector in self.settings.noise_selectors:
            for element in soup.select(selector):
                element.decompose()

        anchors: List[Tag] = []
        for selector in self.settings.content_selectors:
            if soup.select_one(selector) is not None:
                anchors = [a for a in soup.select(f"{selector} a[href]") if isinstance(a, Tag)]
                break
        else:
            anchors = [a for a in soup.find_all("a", href=True) if isinstance(a, Tag)]

        page_key = self._normalize(url)
        host = self._root_host or site_host(url)
        links: List[str] = []
        for tag in anchors:
            href = tag.get("href")
            if not isinstance(href, str):
                continue
            link = self._accept(url, href.strip(), host)
            if link is not None and self._normalize(link) != page_key:
                links.append(link)
        return PageAnalysis(is_leaf=False, links=list(dict.fromkeys(links)))

    def _accept(self, base: str, href: str, host: str) -> str | None:
        if not href or href.startswith("#") or href.lower().startswith(_IGNORED_SCHEMES):
            return None
        if not self.settings.allow_query_links and ("?" in href or "#" in href):
            return None
        try:
            absolute = urljoin(base, href)
            parts = urlsplit(absolute)
        except ValueError:
            return None
        if parts.scheme not in ("http", "https") or site_host(absolute) != host:
            return None

        path = parts.path.lower()
        if posixpath.splitext(path)[1] in self.settings.skip_extensions:
            return None
        if any(p.search(path) for p in self._excluded):
            return None
        if any(s in absolute for s in self.settings.skip_substrings):
            return None
        return urldefrag(absolute)[0]
