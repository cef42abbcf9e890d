"""Exception types raised while crawling and aggregating."""

from __future__ import annotations

from typing import Optional


class CrawlError(Exception):
    """Base class for all crawl errors."""


class FatalProbeError(CrawlError):
    """The page-count probe failed; nothing else can run."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"probe {url} failed: {reason}")


class PageFetchError(CrawlError):
    """One page could not be fetched or decoded."""

    def __init__(self, page_index: int, reason: str, status_code: Optional[int] = None):
        self.page_index = page_index
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"page {page_index}: {reason}")


class AggregationError(CrawlError):
    """Buffered data for a page could not be read back."""

    def __init__(self, page_index: int, reason: str):
        self.page_index = page_index
        self.reason = reason
        super().__init__(f"page {page_index} buffer unreadable: {reason}")
