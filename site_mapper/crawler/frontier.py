# site_mapper/crawler/frontier.py
"""
Frontier and dedup registry: admission control for discovered links.
"""
from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterable, List, Literal, Optional, Set

from site_mapper.crawler.models import FrontierItem
from site_mapper.crawler.normalizer import UrlNormalizer
from site_mapper.logger import logger

__all__ = ("Frontier",)

OrderT = Literal["dfs", "bfs"]


class Frontier:
    """Ordered backlog of unfetched items plus the registry of claimed keys.

    ``try_admit`` checks and claims a canonical key in one step under a lock,
    so concurrent discoverers of the same link enqueue it at most once. Keys
    stay in the registry after the item is popped; the registry only grows.

    Ordering: ``dfs`` pushes new items to the head, ``bfs`` appends them to the
    tail; :meth:`pop` always takes from the head.
    """

    def __init__(
        self,
        normalizer: UrlNormalizer,
        *,
        max_depth: int,
        max_pages: int,
        order: OrderT = "dfs",
    ) -> None:
        if order not in ("dfs", "bfs"):
            raise ValueError(f"unknown frontier order: {order!r}")
        self._normalize = normalizer
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.order = order
        self._items: Deque[FrontierItem] = deque()
        self._registry: Set[str] = set()
        self._lock = threading.Lock()
        self._limit_logged = False

    # ------------------------------------------------------------------ #
    # admission
    # ------------------------------------------------------------------ #
    def seed(self, url: str) -> bool:
        """Claim the seed address at depth 0."""
        return self.try_admit(url, None, 0)

    def try_admit(self, url: str, parent: Optional[str], depth: int) -> bool:
        """Enqueue ``url`` unless its key was ever claimed or a bound is exceeded."""
        return bool(self.admit_all([url], parent, depth))

    def admit_all(self, urls: Iterable[str], parent: Optional[str], depth: int) -> List[str]:
        """Admit a batch of links found on one page; returns the admitted ones.

        Each URL is checked and claimed atomically. Admitted items keep their
        relative order at the head (dfs) or tail (bfs).
        """
        if depth < 0 or depth > self.max_depth:
            logger.debug("Depth %d exceeds limit %d, not admitted: %s", depth, self.max_depth, parent)
            return []
        keyed = [(url, self._normalize(url)) for url in urls]
        batch: List[FrontierItem] = []
        with self._lock:
            for url, key in keyed:
                if key in self._registry:
                    continue
                if len(self._registry) >= self.max_pages:
                    if not self._limit_logged:
                        logger.warning("max_pages=%d reached, admission stopped", self.max_pages)
                        self._limit_logged = True
                    break
                self._registry.add(key)
                batch.append(FrontierItem(url=url, parent=parent, depth=depth))
            if self.order == "dfs":
                self._items.extendleft(reversed(batch))
            else:
                self._items.extend(batch)
        for item in batch:
            logger.debug("Admitted (depth %d): %s", depth, item.url)
        return [item.url for item in batch]

    # ------------------------------------------------------------------ #
    # dispatch side
    # ------------------------------------------------------------------ #
    def pop(self) -> Optional[FrontierItem]:
        with self._lock:
            return self._items.popleft() if self._items else None

    def push_back(self, item: FrontierItem) -> None:
        """Return an already-claimed item to the head (its run was interrupted)."""
        with self._lock:
            self._items.appendleft(item)

    def restore(self, visited: Iterable[str], items: Iterable[FrontierItem]) -> int:
        """Replace contents from a checkpoint; returns how many items were dropped.

        The registry is rebuilt as ``visited`` plus the keys of kept items; an
        item whose key is already visited or already kept is dropped.
        """
        registry = {self._normalize(key) for key in visited}
        kept: List[FrontierItem] = []
        dropped = 0
        for item in items:
            key = self._normalize(item.url)
            if key in registry:
                dropped += 1
                continue
            registry.add(key)
            kept.append(item)
        with self._lock:
            self._registry = registry
            self._items = deque(kept)
            self._limit_logged = False
        return dropped

    # ------------------------------------------------------------------ #
    # introspection
    # ------------------------------------------------------------------ #
    def is_claimed(self, url: str) -> bool:
        with self._lock:
            return self._normalize(url) in self._registry

    def registry(self) -> Set[str]:
        with self._lock:
            return set(self._registry)

    def items(self) -> List[FrontierItem]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
