"""Value types shared by the fetcher, aggregator and orchestrator."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from .errors import PageFetchError


@dataclass(frozen=True)
class PageSuccess:
    page_index: int
    documents: Tuple[Any, ...]
    status_code: int = 200
    elapsed_s: float = 0.0

    ok = True


@dataclass(frozen=True)
class PageFailure:
    page_index: int
    error: PageFetchError
    status_code: int = 0
    elapsed_s: float = 0.0

    ok = False


PageResult = Union[PageSuccess, PageFailure]


class CrawlState(str, enum.Enum):
    INIT = "init"
    PROBING = "probing"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CrawlSummary:
    state: CrawlState
    total_pages: int = 0
    attempted_pages: int = 0
    failed_pages: Tuple[int, ...] = field(default_factory=tuple)
    document_count: int = 0
    output: Optional[Path] = None
    elapsed_s: float = 0.0

    @property
    def failed_count(self) -> int:
        return len(self.failed_pages)

    @property
    def complete(self) -> bool:
        """True when every page made it into the artifact."""
        return self.state is CrawlState.DONE and not self.failed_pages
