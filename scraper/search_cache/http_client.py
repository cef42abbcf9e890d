"""HTTP client utilities: pooled async client and page URL building."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .config import CrawlConfig


logger = logging.getLogger(__name__)


def _httpx_timeout(seconds: float) -> httpx.Timeout:
    return httpx.Timeout(connect=seconds, read=seconds, write=seconds, pool=seconds)


def build_page_url(base_url: str, page_index: int, page_size: int) -> str:
    """Return <base>/<page_index>?pageSize=<page_size>."""
    return f"{base_url.rstrip('/')}/{int(page_index)}?pageSize={int(page_size)}"


def make_client(
    config: CrawlConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Return an AsyncClient with a bounded, expiring connection pool.

    ``transport`` replaces the network layer (tests pass an httpx.MockTransport).
    """
    limits = httpx.Limits(
        max_connections=config.max_connections,
        max_keepalive_connections=config.max_connections,
        keepalive_expiry=config.keepalive_expiry_s,
    )

    async def _log_request(request: httpx.Request):
        logger.debug("HTTPX request: %s %s", request.method, request.url)

    async def _log_response(response: httpx.Response):
        logger.debug(
            "HTTPX response: %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )

    kwargs = {}
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.AsyncClient(
        http2=transport is None,
        timeout=_httpx_timeout(config.timeout_s),
        limits=limits,
        headers=dict(config.headers),
        event_hooks={
            "request": [_log_request],
            "response": [_log_response],
        },
        **kwargs,
    )
