"""Page-count probe and single-page fetcher.

- ``probe_total_pages`` requests page 0 once and derives the page count
  from ``info.total``; every failure there is fatal.
- ``fetch_page`` requests one page through the limiter and turns any
  transport, status or decoding problem into a ``PageFailure``.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Optional, Tuple

import httpx

from .codec import decode_body, encode_document
from .config import CrawlConfig
from .errors import FatalProbeError, PageFetchError
from .http_client import build_page_url
from .limiter import ConcurrencyLimiter
from .models import PageFailure, PageResult, PageSuccess
from .progress import ProgressEvent, ProgressSink


logger = logging.getLogger(__name__)


def _parse_total(payload: Any) -> int:
    if not isinstance(payload, dict):
        raise ValueError("response is not a JSON object")
    info = payload.get("info")
    if not isinstance(info, dict) or "total" not in info:
        raise ValueError("missing info.total")
    total = info["total"]
    # bool is an int subclass
    if isinstance(total, bool) or not isinstance(total, int):
        raise ValueError(f"info.total is not an integer: {total!r}")
    if total < 0:
        raise ValueError(f"info.total is negative: {total}")
    return total


async def probe_total_pages(client: httpx.AsyncClient, config: CrawlConfig) -> int:
    """Return ceil(info.total / page_size) from page 0; raise FatalProbeError otherwise."""
    url = build_page_url(config.base_url, 0, config.page_size)
    logger.info("Probe first page to detect total pages → %s", url)
    try:
        resp = await client.get(url)
        resp.raise_for_status()
        total = _parse_total(decode_body(resp.content))
    except httpx.HTTPStatusError as exc:
        raise FatalProbeError(url, f"HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise FatalProbeError(url, f"{type(exc).__name__}: {exc}") from exc
    except ValueError as exc:
        raise FatalProbeError(url, f"bad response: {exc}") from exc
    total_pages = math.ceil(total / config.page_size)
    logger.info("Detected total=%s → %s pages of %s", total, total_pages, config.page_size)
    return total_pages


def _extract_documents(payload: Any) -> Tuple[Any, ...]:
    if not isinstance(payload, dict):
        raise ValueError("response is not a JSON object")
    docs = payload.get("docs")
    if docs is None:
        return ()
    if not isinstance(docs, list):
        raise ValueError(f"docs is {type(docs).__name__}, expected array")
    for doc in docs:
        encode_document(doc)
    return tuple(docs)


async def fetch_page(
    client: httpx.AsyncClient,
    page_index: int,
    total_pages: int,
    limiter: ConcurrencyLimiter,
    sink: ProgressSink,
    config: CrawlConfig,
) -> PageResult:
    """Fetch one page, report it, and return its PageResult. Never raises for page errors."""
    url = build_page_url(config.base_url, page_index, config.page_size)
    status: int = 0
    error: Optional[PageFetchError] = None
    documents: Tuple[Any, ...] = ()
    async with limiter:
        t0 = time.perf_counter()
        logger.debug("[page %s] fetch start → %s", page_index, url)
        try:
            resp = await client.get(url)
            status = resp.status_code
            resp.raise_for_status()
            documents = _extract_documents(decode_body(resp.content))
        except httpx.HTTPStatusError:
            error = PageFetchError(page_index, f"HTTP {status}", status)
        except httpx.TimeoutException as exc:
            error = PageFetchError(page_index, f"timeout: {exc}", status)
        except httpx.HTTPError as exc:
            error = PageFetchError(page_index, f"{type(exc).__name__}: {exc}", status)
        except ValueError as exc:
            error = PageFetchError(page_index, f"malformed body: {exc}", status)
        except Exception as exc:
            error = PageFetchError(page_index, f"unexpected {type(exc).__name__}: {exc}", status)
        elapsed = time.perf_counter() - t0

    if error is not None:
        logger.warning("[page %s] failed after %.3fs: %s", page_index, elapsed, error.reason)
        sink.report(ProgressEvent(page_index + 1, total_pages, error))
        return PageFailure(page_index, error, status, elapsed)

    # Per-page success lines come from the progress sink
    logger.debug(
        "[page %s] status=%s elapsed=%.3fs docs=%s",
        page_index,
        status,
        elapsed,
        len(documents),
    )
    sink.report(ProgressEvent(page_index + 1, total_pages))
    return PageSuccess(page_index, documents, status, elapsed)
