"""Paginated search API crawler (httpx + asyncio).

Probes the page count, fetches every page with bounded concurrency and
merges the results, in page order, into a single ``{"docs": [...]}`` file.
"""

from .config import CrawlConfig
from .errors import AggregationError, CrawlError, FatalProbeError, PageFetchError
from .models import CrawlState, CrawlSummary, PageFailure, PageSuccess
from .orchestrator import Orchestrator, crawl

__all__ = [
    "AggregationError",
    "CrawlConfig",
    "CrawlError",
    "CrawlState",
    "CrawlSummary",
    "FatalProbeError",
    "Orchestrator",
    "PageFailure",
    "PageFetchError",
    "PageSuccess",
    "crawl",
]
