"""site_mapper.report.html_report: Генерация HTML-отчёта с помощью Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_mapper.crawler.models import BrokenReportItem, CrawlStats
from site_mapper.sitemap import SiteMapNode, render_tree

#: шаблоны, поставляемые вместе с пакетом
DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_NAME = "report.html.j2"


def render_html(
    items: Iterable[BrokenReportItem],
    output_path: Union[Path, str],
    *,
    stats: Optional[CrawlStats] = None,
    site_map: Optional[SiteMapNode] = None,
    template_dir: Union[Path, str, None] = None,
    title: str = "SiteMapper report",
) -> Path:
    """Рендерит HTML-отчёт из шаблона и сохраняет его по указанному пути.

    Args:
        items: элементы отчёта о битых ссылках.
        output_path: путь к итоговому HTML-файлу.
        stats: счётчики обхода (необязательно).
        site_map: дерево сайта; выводится в текстовом виде.
        template_dir: директория с Jinja2-шаблонами (по умолчанию встроенная).

    Returns:
        Path до сохранённого HTML-файла.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir or DEFAULT_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template(TEMPLATE_NAME)

    context: dict[str, Any] = {
        "title": title,
        "items": list(items),
        "stats": stats,
        "tree": render_tree(site_map) if site_map is not None else None,
    }

    html_content = template.render(**context)
    output_path.write_text(html_content, encoding="utf-8")

    return output_path
