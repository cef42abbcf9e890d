"""Crawl settings: module defaults, env overrides and the frozen config."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict


DEFAULT_BASE_URL = "https://api.beatsaver.com/search/text"
DEFAULT_PAGE_SIZE = 100
DEFAULT_CONCURRENCY = 2
DEFAULT_MAX_CONNECTIONS = 5
DEFAULT_KEEPALIVE_EXPIRY_S = 300.0
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_OUTPUT = Path("localcache.saver")
DEFAULT_MEMORY_LIMIT_MB = 512
# Rough size of one serialized document, used only by the auto buffer policy
APPROX_DOC_BYTES = 4096

BUFFER_MODES = ("auto", "memory", "disk")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _default_headers() -> Dict[str, str]:
    return {
        "User-Agent": (
            "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) "
            "Gecko/20100101 Firefox/128.0"
        ),
        "Accept": "application/json",
    }


@dataclass(frozen=True)
class CrawlConfig:
    base_url: str = DEFAULT_BASE_URL
    page_size: int = DEFAULT_PAGE_SIZE
    concurrency: int = DEFAULT_CONCURRENCY
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    keepalive_expiry_s: float = DEFAULT_KEEPALIVE_EXPIRY_S
    timeout_s: float = DEFAULT_TIMEOUT_S
    output: Path = DEFAULT_OUTPUT
    buffer: str = "auto"
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    report: Path | None = None
    headers: Dict[str, str] = field(default_factory=_default_headers)

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")
        if self.buffer not in BUFFER_MODES:
            raise ValueError(f"buffer must be one of {BUFFER_MODES}, got {self.buffer!r}")

    @property
    def memory_limit_bytes(self) -> int:
        return int(self.memory_limit_mb) * 1024 * 1024

    @classmethod
    def from_env(cls, **overrides) -> "CrawlConfig":
        """Build a config from SEARCH_CACHE_* variables; explicit overrides win."""
        values = {
            "base_url": os.environ.get("SEARCH_CACHE_BASE_URL", DEFAULT_BASE_URL),
            "page_size": _env_int("SEARCH_CACHE_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            "concurrency": _env_int("SEARCH_CACHE_CONCURRENCY", DEFAULT_CONCURRENCY),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
