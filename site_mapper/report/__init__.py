# File: site_mapper/report/__init__.py
"""site_mapper.report: экспорт отчётов о битых ссылках (JSON и HTML) для CLI и тестов."""

from __future__ import annotations

from site_mapper.report.html_report import render_html
from site_mapper.report.json_report import render_json

__all__ = ["render_json", "render_html"]
