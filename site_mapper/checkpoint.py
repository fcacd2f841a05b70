# File: site_mapper/checkpoint.py
"""site_mapper.checkpoint: сохранение и загрузка состояния обхода (JSON).

Document layout::

    {
      "queue":       [{"url": ..., "parent": ..., "depth": 0}],
      "visited":     ["https://example.com/a", ...],
      "siteMap":     {"<key>": {"url": ..., "status": "ok", "children": [...], "parent": ...}},
      "brokenLinks": [{"brokenLink": ..., "redirectedTo": ..., "foundOnPage": ..., "status": ...}]
    }

No dedup registry is stored; the engine rebuilds it on load.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from site_mapper.crawler.models import (
    BrokenReportItem,
    EngineState,
    FrontierItem,
    LinkStatus,
    PageRecord,
)
from site_mapper.errors import CheckpointError
from site_mapper.logger import logger

__all__ = (
    "state_to_dict",
    "state_from_dict",
    "save_checkpoint",
    "load_checkpoint",
    "broken_item_to_dict",
)


class _QueueItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    parent: Optional[str] = None
    depth: int = Field(0, ge=0)


class _PageNode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    status: LinkStatus = LinkStatus.PENDING
    children: List[str] = Field(default_factory=list)
    parent: Optional[str] = None


class _BrokenLink(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    broken_link: str = Field(..., alias="brokenLink")
    redirected_to: Optional[str] = Field(None, alias="redirectedTo")
    found_on_page: str = Field(..., alias="foundOnPage")
    status: LinkStatus


class _Checkpoint(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    queue: List[_QueueItem] = Field(default_factory=list)
    visited: List[str] = Field(default_factory=list)
    site_map: Dict[str, _PageNode] = Field(default_factory=dict, alias="siteMap")
    broken_links: List[_BrokenLink] = Field(default_factory=list, alias="brokenLinks")


def broken_item_to_dict(item: BrokenReportItem) -> Dict[str, Any]:
    return {
        "brokenLink": item.broken_link,
        "redirectedTo": item.redirected_to,
        "foundOnPage": item.found_on_page,
        "status": item.status.value,
    }


def state_to_dict(state: EngineState) -> Dict[str, Any]:
    """Convert an :class:`EngineState` to the JSON document structure."""
    return {
        "queue": [{"url": i.url, "parent": i.parent, "depth": i.depth} for i in state.frontier],
        "visited": list(state.visited),
        "siteMap": {
            key: {
                "url": rec.url,
                "status": rec.status.value,
                "children": list(rec.children),
                "parent": rec.parent,
            }
            for key, rec in state.site_map.items()
        },
        "brokenLinks": [broken_item_to_dict(b) for b in state.broken_links],
    }


def state_from_dict(data: Any) -> EngineState:
    """Validate a decoded document and build an :class:`EngineState`."""
    try:
        doc = _Checkpoint.model_validate(data)
    except ValidationError as exc:
        raise CheckpointError(f"Invalid checkpoint document: {exc}") from exc
    return EngineState(
        frontier=[FrontierItem(url=q.url, parent=q.parent, depth=q.depth) for q in doc.queue],
        visited=list(doc.visited),
        site_map={
            key: PageRecord(url=n.url, status=n.status, children=tuple(n.children), parent=n.parent)
            for key, n in doc.site_map.items()
        },
        broken_links=[
            BrokenReportItem(
                broken_link=b.broken_link,
                redirected_to=b.redirected_to,
                found_on_page=b.found_on_page,
                status=b.status,
            )
            for b in doc.broken_links
        ],
    )


def save_checkpoint(state: EngineState, path: Union[str, Path]) -> Path:
    """Write the checkpoint atomically (temp file + rename)."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    tmp = output.with_name(output.name + ".tmp")
    tmp.write_text(json.dumps(state_to_dict(state), ensure_ascii=False), encoding="utf-8")
    tmp.replace(output)
    logger.info(
        "Checkpoint saved to %s (%d queued, %d visited)", output, len(state.frontier), len(state.visited)
    )
    return output


def load_checkpoint(path: Union[str, Path]) -> EngineState:
    """Read and validate a checkpoint file."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CheckpointError(f"Cannot read checkpoint {p}: {exc}") from exc
    if not isinstance(data, dict):
        raise CheckpointError(f"Checkpoint {p} must contain a JSON object, got {type(data).__name__}")
    return state_from_dict(data)
