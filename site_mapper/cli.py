# === FILE: site_mapper/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска SiteMapper через командную строку.

Команды:
  crawl     Обойти сайт, сохранить прогресс и отчёты
  check     Проверить отдельные URL (с переходом по редиректам)
  sitemap   Показать дерево сайта из файла сохранения
  report    Экспортировать отчёт о битых ссылках из файла сохранения
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Пример:
  site-mapper crawl --save crawler-save.json --json broken-links-report.json
  site-mapper crawl --resume crawler-save.json --save crawler-save.json --duration 600
"""
from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
from pathlib import Path
from typing import Optional

import click

from site_mapper import __version__
from site_mapper.checkpoint import load_checkpoint, save_checkpoint
from site_mapper.config import CrawlerConfig, load_config
from site_mapper.crawler.engine import CrawlEngine
from site_mapper.crawler.fetcher import HttpFetcher, create_session
from site_mapper.crawler.models import LinkStatus, LiveScanItem
from site_mapper.crawler.normalizer import UrlNormalizer
from site_mapper.errors import SiteMapperError
from site_mapper.logger import DEFAULT_FORMAT, init_logging
from site_mapper.report.html_report import render_html
from site_mapper.report.json_report import render_json, report_items
from site_mapper.sitemap import build_site_map, render_tree

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

_STATUS_COLORS = {
    LinkStatus.OK: "green",
    LinkStatus.REDIRECT: "blue",
    LinkStatus.SOFT_404: "yellow",
    LinkStatus.BROKEN: "red",
    LinkStatus.ERROR: "red",
}


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _echo_result(item: LiveScanItem) -> None:
    click.secho(
        f"{item.status.value:>8} d={item.depth} links={item.found_count} {item.url}",
        fg=_STATUS_COLORS.get(item.status),
        err=True,
    )


async def run_crawl(
    cfg: CrawlerConfig,
    *,
    resume: Optional[Path] = None,
    duration: Optional[float] = None,
    quiet: bool = False,
) -> CrawlEngine:
    """Запускает обход; SIGINT и ``duration`` останавливают его кооперативно.

    Возвращает движок (уже закрытый) для чтения результатов и сохранения.
    """
    engine = CrawlEngine(cfg, on_result=None if quiet else _echo_result)
    async with engine:
        if resume is not None:
            engine.load(load_checkpoint(resume))
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, engine.stop)
        timer = loop.call_later(duration, engine.pause) if duration else None
        try:
            await engine.start()
        finally:
            if timer is not None:
                timer.cancel()
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(signal.SIGINT)
    return engine


async def run_check(cfg: CrawlerConfig, urls: tuple[str, ...]):
    async with create_session(cfg) as session:
        fetcher = HttpFetcher(session, cfg)
        return await asyncio.gather(*(fetcher.check(u) for u in urls))


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteMapper, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteMapper CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--resume', '-r', 'resume',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Продолжить обход из файла сохранения'
)
@click.option(
    '--save', '-s', 'save_path',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить прогресс в файл по завершении или остановке'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт о битых ссылках'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт'
)
@click.option('--sitemap', 'show_sitemap', is_flag=True, help='Вывести дерево сайта')
@click.option(
    '--limit', '-l', 'limit',
    type=click.IntRange(min=1),
    default=None,
    help='Макс. число страниц (override max_pages)'
)
@click.option(
    '--duration', 'duration',
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help='Поставить обход на паузу через SEC секунд'
)
@click.option('--quiet', '-q', is_flag=True, help='Не выводить ленту результатов')
@click.pass_context
def crawl(ctx, resume, save_path, json_output, html_output, show_sitemap, limit, duration, quiet):
    """Обойти сайт и сформировать отчёт о битых ссылках."""
    cfg: CrawlerConfig = ctx.obj['config']
    if limit is not None:
        cfg = cfg.model_copy(update={'max_pages': limit})
    click.echo(f'Starting crawl: {cfg.root_url}', err=True)
    try:
        engine = asyncio.run(run_crawl(cfg, resume=resume, duration=duration, quiet=quiet))
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    stats = engine.stats()
    outcome = engine.last_outcome or engine.state
    click.echo(
        f'{outcome.value}: visited={stats.visited} ok={stats.ok} broken={stats.broken} '
        f'soft404={stats.soft_404} queued={stats.queued}'
    )

    if save_path:
        try:
            click.echo(f'Checkpoint: {save_checkpoint(engine.save(), save_path)}')
        except OSError as e:
            print_error(f'Ошибка при сохранении прогресса: {e}')

    if json_output:
        try:
            click.echo(f'JSON report: {render_json(engine.broken_links(), json_output)}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(
                engine.broken_links(), html_output, stats=stats, site_map=engine.site_map()
            )
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')

    if show_sitemap:
        click.echo(render_tree(engine.site_map()))


@cli.command('check', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1, required=True)
@click.pass_context
def check(ctx, urls):
    """Проверить отдельные URL; код выхода 1, если есть битые."""
    cfg = ctx.obj['config']
    try:
        results = asyncio.run(run_check(cfg, tuple(urls)))
    except Exception as e:
        print_error(f'Ошибка при проверке: {e}')
    for r in results:
        click.secho(
            f'{r.status.value:>8} {r.status_code or "-"} {r.original_url} -> {r.final_url or "-"}',
            fg=_STATUS_COLORS.get(r.status),
        )
    if any(r.is_broken for r in results):
        sys.exit(1)


@cli.command('sitemap', context_settings=CONTEXT_SETTINGS)
@click.argument('checkpoint', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--as-json', 'as_json', is_flag=True, help='Вывести дерево в JSON')
@click.pass_context
def sitemap(ctx, checkpoint, as_json):
    """Показать дерево сайта из файла сохранения."""
    cfg: CrawlerConfig = ctx.obj['config']
    try:
        state = load_checkpoint(checkpoint)
    except SiteMapperError as e:
        print_error(f'Ошибка чтения файла сохранения: {e}')
    tree = build_site_map(state.site_map, cfg.root_url, UrlNormalizer(ignore_query=cfg.ignore_query))
    if as_json:
        click.echo(json.dumps(tree.to_dict(), ensure_ascii=False, indent=2))
    else:
        click.echo(render_tree(tree))


@cli.command('report', context_settings=CONTEXT_SETTINGS)
@click.argument('checkpoint', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.pass_context
def report(ctx, checkpoint, json_output, html_output):
    """Экспортировать отчёт о битых ссылках из файла сохранения."""
    cfg: CrawlerConfig = ctx.obj['config']
    try:
        state = load_checkpoint(checkpoint)
    except SiteMapperError as e:
        print_error(f'Ошибка чтения файла сохранения: {e}')

    # Если не сохраняем в файл, печатаем в stdout
    if not json_output and not html_output:
        click.echo(json.dumps(report_items(state.broken_links), ensure_ascii=False, indent=2))
        return

    if json_output:
        click.echo(f'JSON report: {render_json(state.broken_links, json_output)}')
    if html_output:
        tree = build_site_map(state.site_map, cfg.root_url, UrlNormalizer(ignore_query=cfg.ignore_query))
        click.echo(f'HTML report: {render_html(state.broken_links, html_output, site_map=tree)}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


# expose these names at module level for test monkey-patching
cli.run_crawl = run_crawl
cli.render_json = render_json
cli.render_html = render_html

if __name__ == "__main__":
    cli()
