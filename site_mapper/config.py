"""
Модуль для загрузки и валидации конфигурации SiteMapper.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, List, Literal, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
)

__all__ = ("AnalyzerConfig", "CrawlerConfig", "load_config")


class AnalyzerConfig(BaseModel):
    """Правила анализа страницы: шум, признаки листа и фильтры ссылок."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    noise_selectors: List[str] = Field(
        default_factory=lambda: [
            "header", "nav", "footer", ".breadcrumb", ".widget",
            "script", "style", "noscript", "iframe",
        ],
        description="CSS-селекторы, удаляемые до извлечения ссылок.",
    )
    leaf_selectors: List[str] = Field(
        default_factory=list,
        description="Если любой селектор найден, страница считается конечной.",
    )
    content_selectors: List[str] = Field(
        default_factory=list,
        description="Первый найденный селектор ограничивает область поиска ссылок.",
    )
    excluded_path_patterns: List[str] = Field(
        default_factory=list,
        description="Регулярные выражения для пути; совпавшие ссылки отбрасываются.",
    )
    skip_extensions: List[str] = Field(
        default_factory=lambda: [
            ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico",
            ".pdf", ".zip", ".css", ".js", ".mp4", ".mp3",
        ],
        description="Расширения файлов, которые не обходятся.",
    )
    skip_substrings: List[str] = Field(
        default_factory=list, description="Подстроки URL, при наличии которых ссылка отбрасывается."
    )
    allow_query_links: bool = Field(
        False, description="Разрешить ссылки с query-строкой или фрагментом."
    )

    @field_validator("excluded_path_patterns")
    def _check_patterns(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Неправильное регулярное выражение {pattern!r}: {exc}") from exc
        return v

    @field_validator("skip_extensions")
    def _lower_extensions(cls, v: List[str]) -> List[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


class CrawlerConfig(BaseModel):
    """Конфигурация для одного запуска обхода."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(..., description="Корневой URL сайта (seed).")
    max_depth: int = Field(6, ge=0, description="Максимальная глубина обхода ссылок.")
    max_pages: int = Field(10000, ge=1, description="Жесткий лимит по числу допущенных URL.")
    max_concurrency: int = Field(20, ge=1, description="Число одновременных загрузок.")
    timeout: float = Field(15.0, gt=0, description="Таймаут на одну задачу (секунд).")
    head_timeout: float = Field(5.0, gt=0, description="Таймаут предварительного HEAD-запроса.")
    head_check: bool = Field(True, description="Проверять Content-Type через HEAD перед GET.")
    retry_times: int = Field(0, ge=0, description="Число повторных попыток при 5xx/429.")
    user_agent: str = Field("SiteMapperBot/1.0", min_length=1, description="Заголовок User-Agent.")
    verify_ssl: bool = Field(False, description="Проверять TLS-сертификаты.")
    order: Literal["dfs", "bfs"] = Field("dfs", description="Порядок обхода очереди.")
    ignore_query: bool = Field(True, description="Отбрасывать query-строку при нормализации.")
    soft_404_on_root_redirect: bool = Field(
        True, description="Считать редирект на корень сайта мягкой 404."
    )
    live_feed_size: int = Field(8, ge=1, description="Размер ленты последних результатов.")
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)

    @field_validator("base_url", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @property
    def root_url(self) -> str:
        """Seed address as a plain string without the trailing slash pydantic adds."""
        return str(self.base_url).rstrip("/")


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> CrawlerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlerConfig.
    При отсутствии файла конфига бросает FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return CrawlerConfig(**data)
    except ValidationError:
        raise
