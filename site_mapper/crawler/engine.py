# === FILE: site_mapper/crawler/engine.py ===
"""
Crawl engine: bounded worker pool over the frontier, page commits and the
save/load lifecycle.

Typical use::

    async with CrawlEngine(config) as engine:
        stats = await engine.start()
        state = engine.save()
"""
from __future__ import annotations

import asyncio
import time
from collections import Counter, deque
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Set

from aiohttp import ClientError, ClientSession

from site_mapper.config import CrawlerConfig
from site_mapper.crawler.analyzer import HtmlPageAnalyzer, PageAnalyzer
from site_mapper.crawler.classifier import RedirectToRootRule, SoftNotFoundRule, classify_response
from site_mapper.crawler.fetcher import Fetcher, HttpFetcher, create_session
from site_mapper.crawler.frontier import Frontier
from site_mapper.crawler.models import (
    AnalysisResult,
    BrokenReportItem,
    CrawlStats,
    EngineState,
    FrontierItem,
    LinkStatus,
    LiveScanItem,
    PageRecord,
)
from site_mapper.crawler.normalizer import UrlNormalizer, site_host
from site_mapper.errors import EngineStateError
from site_mapper.logger import logger
from site_mapper.sitemap import SiteMapNode, build_site_map

__all__ = ("CrawlEngine", "EngineStatus", "ROOT_PARENT")

#: ``foundOnPage`` value for problems found on the seed itself
ROOT_PARENT = "ROOT"

ResultCallback = Callable[[LiveScanItem], None]


class EngineStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    FINISHED = "finished"
    DISPOSED = "disposed"


class CrawlEngine:
    """Single-origin link-integrity crawler.

    ``max_concurrency`` workers pull from the frontier; a worker that finds the
    frontier empty waits while other fetches are in flight (they may admit new
    links) and exits once nothing is queued and nothing is active. ``pause`` and
    ``stop`` are cooperative: no new items are claimed, in-flight fetches
    finish and are committed.
    """

    def __init__(
        self,
        config: CrawlerConfig,
        *,
        fetcher: Optional[Fetcher] = None,
        analyzer: Optional[PageAnalyzer] = None,
        soft_404_rule: Optional[SoftNotFoundRule] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        self.config = config
        self.root_url = config.root_url
        self.normalizer = UrlNormalizer(ignore_query=config.ignore_query)
        self.frontier = Frontier(
            self.normalizer,
            max_depth=config.max_depth,
            max_pages=config.max_pages,
            order=config.order,
        )
        self.analyzer: PageAnalyzer = analyzer or HtmlPageAnalyzer(
            config.analyzer, self.normalizer, root_url=self.root_url
        )
        self._site_host = site_host(self.root_url)
        if soft_404_rule is None and config.soft_404_on_root_redirect:
            soft_404_rule = RedirectToRootRule(self.normalizer)
        self.soft_404_rule = soft_404_rule
        self.on_result = on_result

        self._fetcher = fetcher
        self._session: Optional[ClientSession] = None
        self._visited: Set[str] = set()
        self._records: Dict[str, PageRecord] = {}
        self._broken: List[BrokenReportItem] = []
        self._in_flight: Dict[str, FrontierItem] = {}
        self._feed: Deque[LiveScanItem] = deque(maxlen=config.live_feed_size)
        self._active = 0
        self._halt = False
        self._cond: Optional[asyncio.Condition] = None
        self._workers: List[asyncio.Task[None]] = []
        self.state = EngineStatus.IDLE
        #: state in which the last ``start`` returned (finished, paused or stopped)
        self.last_outcome: Optional[EngineStatus] = None

        self.frontier.seed(self.root_url)
        self._records[self.normalizer(self.root_url)] = PageRecord(url=self.root_url)

    # ------------------------------------------------------------------ #
    # context management
    # ------------------------------------------------------------------ #
    async def __aenter__(self) -> CrawlEngine:
        if self._fetcher is None:
            self._session = create_session(self.config)
            self._fetcher = HttpFetcher(self._session, self.config)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #
    async def start(self) -> CrawlStats:
        """Run until the frontier is drained or the crawl is paused/stopped."""
        self._ensure_usable()
        if self._workers:
            raise EngineStateError("Crawl is already running")
        if self._fetcher is None:
            raise EngineStateError("No fetcher: use 'async with CrawlEngine(...)' or pass fetcher=")

        # items whose run was cancelled go back to the head of the frontier
        for item in self._in_flight.values():
            self.frontier.push_back(item)
        self._in_flight.clear()

        self._halt = False
        self._cond = asyncio.Condition()
        self.state = EngineStatus.RUNNING
        logger.info(
            "Crawl started: %s (queued %d, visited %d, workers %d)",
            self.root_url, len(self.frontier), len(self._visited), self.config.max_concurrency,
        )
        started = time.monotonic()
        self._workers = [
            asyncio.create_task(self._worker()) for _ in range(self.config.max_concurrency)
        ]
        completed = False
        try:
            await asyncio.gather(*self._workers)
            completed = True
        finally:
            for w in self._workers:
                w.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []
            self._active = 0
            if not completed and self.state is EngineStatus.RUNNING:
                self.state = EngineStatus.STOPPED

        if not self._halt:
            self.state = EngineStatus.FINISHED
        self.last_outcome = self.state
        stats = self.stats()
        logger.info(
            "Crawl %s: %d visited, %d broken, %d soft-404, %d queued in %.2f s",
            self.state.value, stats.visited, stats.broken, stats.soft_404, stats.queued,
            time.monotonic() - started,
        )
        return stats

    def pause(self) -> None:
        """Stop claiming new items; ``start`` resumes from the same state."""
        if self.state is EngineStatus.RUNNING:
            self._halt = True
            self.state = EngineStatus.PAUSED
            logger.info("Pause requested, %d fetches in flight", self._active)

    def stop(self) -> None:
        """Like :meth:`pause`, but marks the session as stopped by the user."""
        if self.state in (EngineStatus.RUNNING, EngineStatus.PAUSED):
            self._halt = True
            self.state = EngineStatus.STOPPED
            logger.info("Stop requested, %d fetches in flight", self._active)

    async def dispose(self) -> None:
        """Halt, wait for in-flight work and release the HTTP session."""
        if self.state is EngineStatus.DISPOSED:
            return
        self._halt = True
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self.state = EngineStatus.DISPOSED

    # ------------------------------------------------------------------ #
    # checkpointing
    # ------------------------------------------------------------------ #
    def save(self) -> EngineState:
        """Point-in-time snapshot; in-flight items are saved as still queued."""
        return EngineState(
            frontier=list(self._in_flight.values()) + self.frontier.items(),
            visited=sorted(self._visited),
            site_map=dict(self._records),
            broken_links=list(self._broken),
        )

    def load(self, state: EngineState) -> int:
        """Replace the engine state; returns the number of dropped queue items.

        The dedup registry is never read from the checkpoint: it is rebuilt
        from ``visited`` and the keys of the surviving frontier items.
        """
        self._ensure_usable()
        if self._workers:
            raise EngineStateError("Cannot load a checkpoint while the crawl is running")

        visited = {self.normalizer(key) for key in state.visited}
        dropped = self.frontier.restore(visited, state.frontier)
        self._visited = visited
        self._records = {self.normalizer(key): rec for key, rec in state.site_map.items()}
        self._records.setdefault(self.normalizer(self.root_url), PageRecord(url=self.root_url))
        self._broken = list(state.broken_links)
        self._in_flight.clear()
        self._feed.clear()
        self.state = EngineStatus.IDLE
        logger.info(
            "Checkpoint loaded: %d queued, %d visited, %d duplicates dropped",
            len(self.frontier), len(self._visited), dropped,
        )
        return dropped

    # ------------------------------------------------------------------ #
    # read-only views
    # ------------------------------------------------------------------ #
    @property
    def active_count(self) -> int:
        return self._active

    def stats(self) -> CrawlStats:
        statuses = Counter(rec.status for rec in self._records.values())
        soft = sum(1 for b in self._broken if b.status is LinkStatus.SOFT_404)
        return CrawlStats(
            queued=len(self.frontier),
            visited=len(self._visited),
            mapped=len(self._records),
            ok=statuses[LinkStatus.OK],
            redirects=statuses[LinkStatus.REDIRECT],
            broken=len(self._broken) - soft,
            soft_404=soft,
            errors=statuses[LinkStatus.ERROR],
            active=self._active,
        )

    def records(self) -> Dict[str, PageRecord]:
        return dict(self._records)

    def visited(self) -> Set[str]:
        return set(self._visited)

    def broken_links(self) -> List[BrokenReportItem]:
        return list(self._broken)

    def live_feed(self) -> List[LiveScanItem]:
        return list(self._feed)

    def site_map(self) -> SiteMapNode:
        return build_site_map(self._records, self.root_url, self.normalizer)

    # ------------------------------------------------------------------ #
    # internals
    # ------------------------------------------------------------------ #
    def _ensure_usable(self) -> None:
        if self.state is EngineStatus.DISPOSED:
            raise EngineStateError("Engine has been disposed")

    async def _worker(self) -> None:
        cond = self._cond
        assert cond is not None
        while True:
            async with cond:
                while True:
                    if self._halt:
                        return
                    item = self.frontier.pop()
                    if item is not None:
                        key = self.normalizer(item.url)
                        if key in self._visited or key in self._in_flight:
                            logger.debug("Skipping already visited %s", item.url)
                            continue
                        self._active += 1
                        self._in_flight[key] = item
                        break
                    if self._active == 0:
                        cond.notify_all()
                        return
                    await cond.wait()

            result: Optional[AnalysisResult] = None
            try:
                result = await self._fetch_and_classify(item)
            finally:
                async with cond:
                    if result is not None:
                        self._commit(item, key, result)
                    self._active -= 1
                    cond.notify_all()

    async def _fetch_and_classify(self, item: FrontierItem) -> AnalysisResult:
        """Never raises except on cancellation; every failure becomes ``error``."""
        assert self._fetcher is not None
        try:
            response = await asyncio.wait_for(self._fetcher.fetch(item.url), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            logger.warning("Timeout after %.1f s: %s", self.config.timeout, item.url)
            return AnalysisResult(status=LinkStatus.ERROR)
        except (ClientError, OSError) as exc:
            logger.warning("Failed %s: %s", item.url, exc)
            return AnalysisResult(status=LinkStatus.ERROR)
        except Exception:
            logger.exception("Unexpected error while fetching %s", item.url)
            return AnalysisResult(status=LinkStatus.ERROR)

        try:
            return await asyncio.to_thread(
                classify_response, response, self.root_url, self.analyzer, self.soft_404_rule
            )
        except Exception:
            logger.exception("Page analysis failed for %s", item.url)
            return AnalysisResult(status=LinkStatus.ERROR)

    def _commit(self, item: FrontierItem, key: str, result: AnalysisResult) -> None:
        """Write the terminal record, admit children, update report and feed."""
        self._in_flight.pop(key, None)
        existing = self._records.get(key)
        if existing is not None and existing.status.is_terminal:
            logger.debug("Record for %s is already terminal (%s)", item.url, existing.status.value)
            self._visited.add(key)
            return

        children: List[str] = []
        # off-site pages (redirect targets) are checked once and never expanded
        on_site = site_host(item.url) == self._site_host
        if result.status.follows_links and not result.is_leaf and on_site:
            seen: Set[str] = {key}
            for link in result.links:
                child_key = self.normalizer(link)
                if child_key in seen:
                    continue
                seen.add(child_key)
                children.append(link)
            for link in self.frontier.admit_all(children, item.url, item.depth + 1):
                self._records.setdefault(self.normalizer(link), PageRecord(url=link, parent=item.url))

        self._records[key] = PageRecord(
            url=item.url,
            status=result.status,
            children=tuple(children),
            parent=item.parent,
        )
        self._visited.add(key)

        if result.status.is_problem:
            self._broken.append(
                BrokenReportItem(
                    broken_link=item.url,
                    redirected_to=result.redirect_location,
                    found_on_page=item.parent or ROOT_PARENT,
                    status=result.status,
                )
            )
            logger.info("[%s] %s (found on %s)", result.status.value, item.url, item.parent or ROOT_PARENT)
        else:
            logger.debug("[%s] %s, %d links", result.status.value, item.url, len(children))

        live = LiveScanItem(url=item.url, found_count=len(children), status=result.status, depth=item.depth)
        self._feed.appendleft(live)
        if self.on_result is not None:
            try:
                self.on_result(live)
            except Exception:
                logger.exception("on_result callback failed for %s", item.url)
