# site_mapper/report/json_report.py

"""
Генерация JSON-отчёта о битых ссылках.

Формат совпадает с форматом записей ``brokenLinks`` в файле сохранения:
``brokenLink``, ``redirectedTo``, ``foundOnPage``, ``status``.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from site_mapper.checkpoint import broken_item_to_dict
from site_mapper.crawler.models import BrokenReportItem


def report_items(items: Iterable[BrokenReportItem]) -> List[Dict[str, Any]]:
    """Сериализует элементы отчёта в список словарей."""
    return [broken_item_to_dict(item) for item in items]


def render_json(items: Iterable[BrokenReportItem], output_path: Path | str) -> Path:
    """
    Сохраняет список битых ссылок в формате JSON по указанному пути.

    :param items: элементы BrokenReportItem
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("w", encoding="utf-8") as f:
        json.dump(report_items(items), f, ensure_ascii=False, indent=2)

    return output
