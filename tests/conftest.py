"""Shared fixtures: an in-process fake of the paginated search API."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Dict, List, Optional

import httpx
import pytest

from scraper.search_cache.config import CrawlConfig
from scraper.search_cache.http_client import make_client


BASE_URL = "https://api.example.test/search/text"


class FakeSearchApi:
    """Serves ``info.total`` and per-page ``docs`` for GET <base>/<page>?pageSize=N.

    ``status`` maps a page to an HTTP error status, ``broken`` holds pages that
    return malformed JSON, ``raw`` maps a page to a literal 200 body,
    ``unreachable`` pages raise a transport error and
    ``delays`` (seconds) lets tests force out-of-order completion.
    """

    def __init__(self, total: int, page_size: int = 100):
        self.total = total
        self.page_size = page_size
        self.status: Dict[int, int] = {}
        self.broken: set = set()
        self.unreachable: set = set()
        self.raw: Dict[int, bytes] = {}
        self.delays: Dict[int, float] = {}
        self.probe_status: Optional[int] = None
        self.calls: Counter = Counter()
        self.in_flight = 0
        self.peak = 0

    def docs_for(self, page: int) -> List[dict]:
        start = page * self.page_size
        stop = min(self.total, start + self.page_size)
        return [{"id": f"doc-{i}", "page": page, "rank": i - start} for i in range(start, stop)]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        page = int(request.url.path.rstrip("/").split("/")[-1])
        assert request.url.params["pageSize"] == str(self.page_size)
        self.calls[page] += 1
        # The first request for page 0 is the page-count probe
        if page == 0 and self.calls[0] == 1:
            if self.probe_status is not None:
                return httpx.Response(self.probe_status, text="probe unavailable")
            return httpx.Response(200, json={"info": {"total": self.total}, "docs": self.docs_for(0)})
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(page, 0.0))
            if page in self.unreachable:
                raise httpx.ConnectError("connection refused", request=request)
            if page in self.status:
                return httpx.Response(self.status[page], text="error")
            if page in self.raw:
                return httpx.Response(200, content=self.raw[page], headers={"content-type": "application/json"})
            if page in self.broken:
                return httpx.Response(200, content=b'{"docs": [', headers={"content-type": "application/json"})
            return httpx.Response(200, json={"info": {"total": self.total}, "docs": self.docs_for(page)})
        finally:
            self.in_flight -= 1

    def fetch_calls(self) -> Counter:
        """Calls made by page fetches (the probe's page-0 call removed)."""
        calls = Counter(self.calls)
        calls[0] -= 1
        return +calls


@pytest.fixture
def make_api():
    def _make(total: int, page_size: int = 100) -> FakeSearchApi:
        return FakeSearchApi(total, page_size)
    return _make


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> CrawlConfig:
        values = {
            "base_url": BASE_URL,
            "page_size": 100,
            "concurrency": 2,
            "output": tmp_path / "localcache.saver",
            "buffer": "memory",
        }
        values.update(overrides)
        return CrawlConfig(**values)
    return _make


def client_for(api: FakeSearchApi, config: CrawlConfig) -> httpx.AsyncClient:
    return make_client(config, transport=httpx.MockTransport(api.handler))


@pytest.fixture
def api_client():
    return client_for
