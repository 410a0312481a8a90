"""Runtime settings read from the environment and optional catalog files."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import LoadStrategy
from .sources.base import CategoryTarget

BASE_DIR = Path(__file__).resolve().parents[1]
load_dotenv(BASE_DIR / ".env")

LOGGER = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def get_dsn() -> str:
    """
    Build the PostgreSQL DSN.

    Priority:
    1. PG_DSN environment variable (full connection string)
    2. Individual components: PG_USER, PG_PASS, PG_HOST, PG_PORT, PG_DB
    """
    dsn = os.getenv("PG_DSN")
    if dsn:
        return dsn

    user = os.getenv("PG_USER")
    password = os.getenv("PG_PASS")
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    database = os.getenv("PG_DB")

    if not all([user, password, database]):
        raise ConfigurationError(
            "Database credentials not configured. "
            "Set PG_DSN or (PG_USER, PG_PASS, PG_DB) environment variables."
        )
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


@dataclass
class Settings:
    """Crawl and load settings.

    Delays are politeness throttles, not retry backoff.
    """

    headless: bool = True
    nav_timeout_ms: int = 120_000
    page_cap: int = 200
    page_delay: float = 2.0
    scroll_step: int = 300
    scroll_interval_ms: int = 300
    settle_ms: int = 1000
    max_scroll_steps: int = 2000
    screenshot_dir: Optional[Path] = None
    load_strategy: LoadStrategy = LoadStrategy.FULL_REPLACE

    @classmethod
    def from_env(cls) -> "Settings":
        screenshot_dir = os.getenv("CRAWL_SCREENSHOT_DIR")
        strategy = os.getenv("CRAWL_LOAD_STRATEGY", LoadStrategy.FULL_REPLACE.value)
        try:
            load_strategy = LoadStrategy(strategy)
        except ValueError as exc:
            raise ConfigurationError(
                f"CRAWL_LOAD_STRATEGY must be one of {[s.value for s in LoadStrategy]}"
            ) from exc

        settings = cls(
            headless=_env_bool("CRAWL_HEADLESS", True),
            nav_timeout_ms=_env_int("CRAWL_NAV_TIMEOUT_MS", 120_000),
            page_cap=_env_int("CRAWL_PAGE_CAP", 200),
            page_delay=_env_float("CRAWL_PAGE_DELAY", 2.0),
            scroll_step=_env_int("CRAWL_SCROLL_STEP", 300),
            scroll_interval_ms=_env_int("CRAWL_SCROLL_INTERVAL_MS", 300),
            settle_ms=_env_int("CRAWL_SETTLE_MS", 1000),
            max_scroll_steps=_env_int("CRAWL_MAX_SCROLL_STEPS", 2000),
            screenshot_dir=Path(screenshot_dir).expanduser() if screenshot_dir else None,
            load_strategy=load_strategy,
        )
        if settings.page_cap < 1:
            raise ConfigurationError("CRAWL_PAGE_CAP must be at least 1")
        return settings


def load_catalog(path: str | Path) -> Dict[str, List[CategoryTarget]]:
    """Read a YAML file mapping source name to a list of {url, name} categories."""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read catalog file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError("catalog must be a mapping of source -> categories")

    catalog: Dict[str, List[CategoryTarget]] = {}
    for source, entries in data.items():
        if not isinstance(entries, list):
            raise ConfigurationError(f"catalog entry for {source!r} must be a list")
        targets = []
        for entry in entries:
            if isinstance(entry, str):
                targets.append(CategoryTarget(url=entry))
            elif isinstance(entry, dict) and entry.get("url"):
                targets.append(CategoryTarget(url=entry["url"], name=entry.get("name", "")))
            else:
                raise ConfigurationError(f"invalid category in {source!r}: {entry!r}")
        catalog[str(source)] = targets
    LOGGER.debug("Loaded catalog from %s: %s", path, {k: len(v) for k, v in catalog.items()})
    return catalog
