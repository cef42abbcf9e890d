#!/usr/bin/env python3
"""CLI: dump every page of a search API into one local JSON cache.

Example:
  python -m scraper.search_cache.cli --out localcache.saver --concurrency 2 --progress
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import (
    BUFFER_MODES,
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_MEMORY_LIMIT_MB,
    DEFAULT_OUTPUT,
    DEFAULT_TIMEOUT_S,
    CrawlConfig,
)
from .errors import FatalProbeError
from .orchestrator import Orchestrator
from .progress import ConsoleProgressSink, LoggingProgressSink, ProgressSink


def _configure_logging(log_dir: Optional[Path], verbose: bool) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(formatter)
    root_logger.addHandler(console)
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = time.strftime("%Y%m%d_%H%M%S")
        fileh = logging.FileHandler(str((log_dir / f"search_cache_{ts}.log").resolve()), encoding="utf-8")
        fileh.setLevel(logging.DEBUG)
        fileh.setFormatter(formatter)
        root_logger.addHandler(fileh)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Fetch all pages of a search API into one JSON document")
    p.add_argument("--base-url", default=None, help="Search endpoint; pages are <base>/<n>?pageSize=<size> (env SEARCH_CACHE_BASE_URL)")
    p.add_argument("--page-size", type=int, default=None, help="Records per page (env SEARCH_CACHE_PAGE_SIZE)")
    p.add_argument("--concurrency", type=int, default=None, help="Max pages in flight (env SEARCH_CACHE_CONCURRENCY)")
    p.add_argument("--max-connections", type=int, default=DEFAULT_MAX_CONNECTIONS)
    p.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S, help="Per-request timeout in seconds")
    p.add_argument("--out", default=str(DEFAULT_OUTPUT), help="Output JSON path")
    p.add_argument("--buffer", choices=BUFFER_MODES, default="auto", help="Where pages wait before the merge")
    p.add_argument("--memory-limit-mb", type=int, default=DEFAULT_MEMORY_LIMIT_MB, help="Auto buffer spills to disk above this estimate")
    p.add_argument("--report", default=None, help="Optional per-page report (.parquet or .csv)")
    p.add_argument("--progress", action=argparse.BooleanOptionalAction, default=True, help="Show a progress bar instead of per-page log lines (failures are still logged)")
    p.add_argument("--log-dir", default=None, help="Directory for detailed logs")
    p.add_argument("--verbose", action="store_true")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(Path(args.log_dir) if args.log_dir else None, args.verbose)

    try:
        config = CrawlConfig.from_env(
            base_url=args.base_url,
            page_size=args.page_size,
            concurrency=args.concurrency,
            max_connections=args.max_connections,
            timeout_s=args.timeout,
            output=Path(args.out),
            buffer=args.buffer,
            memory_limit_mb=args.memory_limit_mb,
            report=Path(args.report) if args.report else None,
        )
    except ValueError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 2

    sink: ProgressSink = ConsoleProgressSink() if args.progress else LoggingProgressSink()
    logging.info("Starting crawl | base=%s | concurrency=%s | out=%s", config.base_url, config.concurrency, config.output)
    try:
        summary = asyncio.run(Orchestrator(config, sink=sink).run())
    except FatalProbeError as exc:
        logging.error("Crawl failed: %s", exc)
        return 1
    except OSError as exc:
        logging.error("Could not write output: %s", exc)
        return 1
    finally:
        sink.close()

    print(f"Saved {summary.document_count} documents to {summary.output}")
    if summary.failed_count:
        print(f"{summary.failed_count} of {summary.total_pages} pages failed and are missing from the cache")
    return 0


if __name__ == "__main__":
    sys.exit(main())
