"""Run a full crawl: probe, bounded fan-out, ordered merge, write.

State machine::

    INIT → PROBING → FETCHING → AGGREGATING → DONE
               ╰──────────────────────────────→ FAILED

A failed probe ends the run before any page task is created and before
the output path is touched. Individual page failures never stop the run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

import httpx

from .aggregator import ResultAggregator
from .config import CrawlConfig
from .errors import FatalProbeError
from .fetcher import fetch_page, probe_total_pages
from .http_client import make_client
from .limiter import ConcurrencyLimiter
from .models import CrawlState, CrawlSummary, PageResult
from .progress import NullProgressSink, ProgressSink
from .report import build_page_report, write_page_report
from .storage import PageStore, select_store


logger = logging.getLogger(__name__)

FetchFn = Callable[
    [httpx.AsyncClient, int, int, ConcurrencyLimiter, ProgressSink, CrawlConfig],
    Awaitable[PageResult],
]

_TRANSITIONS = {
    CrawlState.INIT: {CrawlState.PROBING},
    CrawlState.PROBING: {CrawlState.FETCHING, CrawlState.FAILED},
    CrawlState.FETCHING: {CrawlState.AGGREGATING, CrawlState.FAILED},
    CrawlState.AGGREGATING: {CrawlState.DONE, CrawlState.FAILED},
    CrawlState.DONE: set(),
    CrawlState.FAILED: set(),
}


class Orchestrator:
    def __init__(
        self,
        config: CrawlConfig,
        sink: Optional[ProgressSink] = None,
        client: Optional[httpx.AsyncClient] = None,
        fetch: FetchFn = fetch_page,
    ):
        self.config = config
        self.sink = sink or NullProgressSink()
        self._client = client
        self._fetch = fetch
        self.state = CrawlState.INIT
        self.history: List[CrawlState] = [CrawlState.INIT]
        self.limiter: Optional[ConcurrencyLimiter] = None
        self.results: List[PageResult] = []

    def _transition(self, new: CrawlState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal transition {self.state.value} → {new.value}")
        logger.debug("State %s → %s", self.state.value, new.value)
        self.state = new
        self.history.append(new)

    async def _fetch_and_add(
        self,
        client: httpx.AsyncClient,
        page_index: int,
        total_pages: int,
        aggregator: ResultAggregator,
    ) -> PageResult:
        result = await self._fetch(client, page_index, total_pages, self.limiter, self.sink, self.config)
        await aggregator.add(result)
        return result

    async def run(self) -> CrawlSummary:
        t0 = time.perf_counter()
        self._transition(CrawlState.PROBING)
        owns_client = self._client is None
        client = self._client or make_client(self.config)
        store: Optional[PageStore] = None
        try:
            try:
                total_pages = await probe_total_pages(client, self.config)
            except FatalProbeError as exc:
                logger.error("Aborting crawl: %s", exc)
                self._transition(CrawlState.FAILED)
                raise

            self._transition(CrawlState.FETCHING)
            self.limiter = ConcurrencyLimiter(self.config.concurrency)
            store = select_store(self.config, total_pages)
            aggregator = ResultAggregator(total_pages, store)
            logger.info(
                "Fetching %s pages | concurrency=%s | page_size=%s",
                total_pages,
                self.config.concurrency,
                self.config.page_size,
            )
            tasks = [
                asyncio.create_task(self._fetch_and_add(client, page, total_pages, aggregator))
                for page in range(total_pages)
            ]
            settled = await asyncio.gather(*tasks, return_exceptions=True)
            for outcome in settled:
                if isinstance(outcome, BaseException):
                    raise outcome
            self.results = list(settled)

            self._transition(CrawlState.AGGREGATING)
            count = aggregator.write(self.config.output)
            if self.config.report is not None:
                write_page_report(build_page_report(self.results, aggregator.failed_pages), self.config.report)
            self._transition(CrawlState.DONE)
        except Exception:
            if self.state is not CrawlState.FAILED:
                self._transition(CrawlState.FAILED)
            raise
        finally:
            if store is not None:
                store.close()
            if owns_client:
                await client.aclose()

        summary = CrawlSummary(
            state=self.state,
            total_pages=total_pages,
            attempted_pages=len(self.results),
            failed_pages=aggregator.failed_pages,
            document_count=count,
            output=self.config.output,
            elapsed_s=time.perf_counter() - t0,
        )
        if summary.failed_pages:
            logger.warning(
                "Crawl finished with %s/%s failed pages: %s",
                summary.failed_count,
                total_pages,
                list(summary.failed_pages),
            )
        logger.info(
            "Crawl done: %s documents from %s pages in %.3fs",
            count,
            total_pages,
            summary.elapsed_s,
        )
        return summary


async def crawl(
    config: CrawlConfig,
    sink: Optional[ProgressSink] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> CrawlSummary:
    return await Orchestrator(config, sink=sink, client=client).run()
