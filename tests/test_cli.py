# File: tests/test_cli.py
"""Тесты для CLI (`site_mapper/cli.py`) с использованием click.testing.CliRunner.
Проверяют команды `crawl`, `check`, `sitemap`, `report`, `config`, `--version`,
а также обработку ошибок. Сеть не используется: обход идёт через FakeFetcher.
"""
import importlib
import json

import pytest
from click.testing import CliRunner
from site_mapper.checkpoint import load_checkpoint
from site_mapper.cli import cli
from site_mapper.crawler.engine import CrawlEngine
from site_mapper.crawler.fetcher import CheckResult
from site_mapper.crawler.models import LinkStatus
from site_mapper.logger import init_logging

from conftest import ROOT, FakeFetcher, page, redirect

# the package re-exports the click group as `site_mapper.cli`, shadowing the submodule
cli_module = importlib.import_module("site_mapper.cli")

PAGES = {
    ROOT: page(f"{ROOT}/a", f"{ROOT}/old", f"{ROOT}/gone"),
    f"{ROOT}/a": page(f"{ROOT}/a/1"),
    f"{ROOT}/a/1": page(),
    f"{ROOT}/old": redirect(f"{ROOT}/"),
}


@pytest.fixture(autouse=True)
def restore_logging():
    """CliRunner подменяет stderr; после теста возвращаем обычный обработчик."""
    yield
    init_logging("WARNING")


@pytest.fixture()
def cfg_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"base_url: {ROOT}\nmax_depth: 3\nmax_concurrency: 2\ntimeout: 1.0\nuser_agent: Agent/1.0\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def patch_run_crawl(monkeypatch):
    """Патчим run_crawl: тот же движок, но с FakeFetcher вместо HTTP."""

    async def fake_run_crawl(cfg, *, resume=None, duration=None, quiet=False):
        engine = CrawlEngine(cfg, fetcher=FakeFetcher(PAGES))
        if resume is not None:
            engine.load(load_checkpoint(resume))
        await engine.start()
        await engine.dispose()
        return engine

    monkeypatch.setattr(cli_module, "run_crawl", fake_run_crawl)


def invoke(cfg_file, *args):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", str(cfg_file), "--log-level", "ERROR", *args])


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "SiteMapper" in result.output


def test_show_config(cfg_file):
    result = invoke(cfg_file, "config")
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["base_url"].rstrip("/") == ROOT
    assert data["max_concurrency"] == 2
    assert data["order"] == "dfs"


def test_invalid_config(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("max_depth: 2\n", encoding="utf-8")
    result = invoke(bad, "config")
    assert result.exit_code == 1
    assert "Ошибка загрузки конфигурации" in result.output


def test_crawl_writes_checkpoint_and_reports(cfg_file, tmp_path):
    save = tmp_path / "crawler-save.json"
    report = tmp_path / "broken-links-report.json"
    html = tmp_path / "report.html"
    result = invoke(
        cfg_file, "crawl", "--save", str(save), "--json", str(report), "--html", str(html)
    )
    assert result.exit_code == 0, result.output
    assert "finished: visited=5" in result.output

    doc = json.loads(save.read_text(encoding="utf-8"))
    assert doc["queue"] == []
    assert f"{ROOT}/a/1" in doc["siteMap"]

    items = json.loads(report.read_text(encoding="utf-8"))
    assert {(i["brokenLink"], i["status"]) for i in items} == {
        (f"{ROOT}/old", "soft-404"),
        (f"{ROOT}/gone", "broken"),
    }
    assert all(i["foundOnPage"] == ROOT for i in items)
    assert "/gone" in html.read_text(encoding="utf-8")


def test_crawl_prints_sitemap(cfg_file):
    result = invoke(cfg_file, "crawl", "--sitemap", "--quiet")
    assert result.exit_code == 0
    assert "  /a" in result.output
    assert "    /a/1" in result.output
    assert "/old [SOFT]" in result.output


def test_crawl_limit_overrides_max_pages(cfg_file):
    result = invoke(cfg_file, "crawl", "--limit", "2")
    assert result.exit_code == 0
    assert "visited=2" in result.output


def test_crawl_resume(cfg_file, tmp_path):
    save = tmp_path / "crawler-save.json"
    assert invoke(cfg_file, "crawl", "--save", str(save)).exit_code == 0

    # finished checkpoint: nothing left to fetch, results are preserved
    result = invoke(cfg_file, "crawl", "--resume", str(save))
    assert result.exit_code == 0
    assert "finished: visited=5" in result.output


def test_crawl_failure(cfg_file, monkeypatch):
    async def failing(cfg, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(cli_module, "run_crawl", failing)
    result = invoke(cfg_file, "crawl")
    assert result.exit_code == 1
    assert "boom" in result.output


@pytest.fixture()
def checkpoint(cfg_file, tmp_path):
    save = tmp_path / "crawler-save.json"
    assert invoke(cfg_file, "crawl", "--quiet", "--save", str(save)).exit_code == 0
    return save


def test_report_stdout(cfg_file, checkpoint):
    result = invoke(cfg_file, "report", str(checkpoint))
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert sorted(i["brokenLink"] for i in data) == [f"{ROOT}/gone", f"{ROOT}/old"]


def test_report_files(cfg_file, checkpoint, tmp_path):
    out_json = tmp_path / "out" / "report.json"
    out_html = tmp_path / "out" / "report.html"
    result = invoke(cfg_file, "report", str(checkpoint), "--json", str(out_json), "--html", str(out_html))
    assert result.exit_code == 0
    assert out_json.exists() and out_html.exists()


def test_report_invalid_checkpoint(cfg_file, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text('{"queue": "nope"}', encoding="utf-8")
    result = invoke(cfg_file, "report", str(bad))
    assert result.exit_code == 1
    assert "Ошибка чтения файла сохранения" in result.output


def test_sitemap_command(cfg_file, checkpoint):
    result = invoke(cfg_file, "sitemap", str(checkpoint))
    assert result.exit_code == 0
    assert result.output.splitlines()[0] == "/"

    result = invoke(cfg_file, "sitemap", str(checkpoint), "--as-json")
    tree = json.loads(result.output)
    assert [c["url"] for c in tree["children"]] == [f"{ROOT}/a", f"{ROOT}/old", f"{ROOT}/gone"]


def test_check_command(cfg_file, monkeypatch):
    async def fake_check(cfg, urls):
        return [
            CheckResult(urls[0], urls[0], 200, LinkStatus.OK, False),
            CheckResult(urls[1], f"{ROOT}/", 200, LinkStatus.SOFT_404, True),
        ]

    monkeypatch.setattr(cli_module, "run_check", fake_check)
    result = invoke(cfg_file, "check", f"{ROOT}/fine", f"{ROOT}/old")
    assert result.exit_code == 1
    assert "soft-404" in result.output
    assert f"{ROOT}/old -> {ROOT}/" in result.output


def _run_crawl_with(on_result_action, pages):
    async def fake_run_crawl(cfg, *, resume=None, duration=None, quiet=False):
        engine = CrawlEngine(cfg, fetcher=FakeFetcher(pages))
        engine.on_result = lambda item: on_result_action(engine)
        await engine.start()
        await engine.dispose()
        return engine

    return fake_run_crawl


def test_crawl_summary_reports_stop(cfg_file, monkeypatch):
    monkeypatch.setattr(cli_module, "run_crawl", _run_crawl_with(lambda e: e.stop(), PAGES))
    result = invoke(cfg_file, "crawl")
    assert result.exit_code == 0
    assert "stopped: visited=1" in result.output
    assert "queued=3" in result.output


def test_crawl_summary_reports_pause_with_empty_queue(cfg_file, monkeypatch):
    monkeypatch.setattr(cli_module, "run_crawl", _run_crawl_with(lambda e: e.pause(), {ROOT: page()}))
    result = invoke(cfg_file, "crawl")
    assert result.exit_code == 0
    assert "paused: visited=1" in result.output
    assert "queued=0" in result.output
