# site_mapper/crawler/__init__.py
"""Crawl engine: normalizer, frontier, transport, analysis, classification, dispatch."""
from site_mapper.crawler.engine import CrawlEngine, EngineStatus
from site_mapper.crawler.models import (
    BrokenReportItem,
    CrawlStats,
    EngineState,
    FrontierItem,
    LinkStatus,
    PageRecord,
)
from site_mapper.crawler.normalizer import UrlNormalizer, normalize_url

__all__ = (
    "CrawlEngine",
    "EngineStatus",
    "BrokenReportItem",
    "CrawlStats",
    "EngineState",
    "FrontierItem",
    "LinkStatus",
    "PageRecord",
    "UrlNormalizer",
    "normalize_url",
)
