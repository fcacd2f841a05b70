# site_mapper/errors.py
"""Исключения SiteMapper."""
from __future__ import annotations

__all__ = ("SiteMapperError", "EngineStateError", "CheckpointError")


class SiteMapperError(Exception):
    """Base class for all project errors."""


class EngineStateError(SiteMapperError):
    """Illegal lifecycle transition (e.g. ``load`` while the crawl is running)."""


class CheckpointError(SiteMapperError):
    """Checkpoint document cannot be read or does not match the expected schema."""
