# site_mapper/crawler/models.py
"""
Data models for the SiteMapper crawl engine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class LinkStatus(str, Enum):
    """Reachability health of a single page."""

    PENDING = "pending"
    OK = "ok"
    REDIRECT = "redirect"
    SOFT_404 = "soft-404"
    BROKEN = "broken"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not LinkStatus.PENDING

    @property
    def is_problem(self) -> bool:
        """Statuses that end up in the broken-links report."""
        return self in (LinkStatus.SOFT_404, LinkStatus.BROKEN, LinkStatus.ERROR)

    @property
    def follows_links(self) -> bool:
        return self in (LinkStatus.OK, LinkStatus.REDIRECT)


@dataclass(frozen=True, slots=True)
class FrontierItem:
    """A not-yet-fetched address waiting in the frontier."""

    url: str
    parent: Optional[str]
    depth: int


@dataclass(frozen=True, slots=True)
class PageRecord:
    """Per-page node of the discovery graph, keyed by canonical key in the engine."""

    url: str
    status: LinkStatus = LinkStatus.PENDING
    children: Tuple[str, ...] = ()
    parent: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BrokenReportItem:
    """One row of the broken-links report."""

    broken_link: str
    redirected_to: Optional[str]
    found_on_page: str
    status: LinkStatus


@dataclass(slots=True)
class FetchResponse:
    """Raw transport outcome handed to the classifier.

    ``text`` is ``None`` when the body was not read (non-HTML resource or a
    redirect).
    """

    url: str
    status_code: int
    location: Optional[str] = None
    content_type: str = ""
    text: Optional[str] = None

    @property
    def is_html(self) -> bool:
        return "html" in self.content_type.lower()

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400


@dataclass(slots=True)
class PageAnalysis:
    """What the page analyzer found in a fetched document."""

    is_leaf: bool
    links: List[str] = field(default_factory=list)


@dataclass(slots=True)
class AnalysisResult:
    """Classified outcome of one fetch: status, leaf flag and discovered links."""

    status: LinkStatus
    is_leaf: bool = True
    links: List[str] = field(default_factory=list)
    redirect_location: Optional[str] = None


@dataclass(frozen=True, slots=True)
class LiveScanItem:
    """Entry of the live feed shown to the presentation layer."""

    url: str
    found_count: int
    status: LinkStatus
    depth: int


@dataclass(frozen=True, slots=True)
class CrawlStats:
    """Point-in-time counters for dashboards and the CLI summary."""

    queued: int = 0
    visited: int = 0
    mapped: int = 0
    ok: int = 0
    redirects: int = 0
    broken: int = 0
    soft_404: int = 0
    errors: int = 0
    active: int = 0


@dataclass(slots=True)
class EngineState:
    """Serializable snapshot of the engine (the checkpoint)."""

    frontier: List[FrontierItem] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)
    site_map: Dict[str, PageRecord] = field(default_factory=dict)
    broken_links: List[BrokenReportItem] = field(default_factory=list)
