"""Order-restoring merge of page results into the final artifact.

Pages complete in any order. Each successful page is buffered in a
``PageStore`` under its index; once every page has settled the aggregator
walks the indices in ascending order and streams the documents into
``{"docs": [...]}``. Failed pages contribute nothing.

The store belongs to the caller: the aggregator releases pages as it
reads them but never closes the store.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Iterator, List, Optional, Set, Tuple

from .codec import encode_document
from .errors import AggregationError
from .models import PageResult
from .storage import MemoryPageStore, PageStore


logger = logging.getLogger(__name__)


def strip_nulls(value: Any) -> Any:
    """Drop object fields whose value is null, at any depth. Array elements are kept."""
    if isinstance(value, dict):
        return {k: strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_nulls(v) for v in value]
    return value


class ResultAggregator:
    def __init__(self, total_pages: int, store: Optional[PageStore] = None):
        if total_pages < 0:
            raise ValueError("total_pages must be >= 0")
        self.total_pages = total_pages
        self._store = store if store is not None else MemoryPageStore()
        self._lock = asyncio.Lock()
        self._seen: Set[int] = set()
        self._failed: Set[int] = set()

    @property
    def failed_pages(self) -> Tuple[int, ...]:
        return tuple(sorted(self._failed))

    @property
    def received(self) -> int:
        return len(self._seen)

    async def add(self, result: PageResult) -> None:
        """Record one page result; each page may be added only once.

        Buffering runs in a worker thread so a disk spill never blocks the loop.
        """
        page = result.page_index
        if not 0 <= page < self.total_pages:
            raise ValueError(f"page {page} outside [0, {self.total_pages})")
        async with self._lock:
            if page in self._seen:
                raise ValueError(f"page {page} already aggregated")
            self._seen.add(page)
            if not result.ok:
                self._failed.add(page)
                return
        try:
            await asyncio.to_thread(self._store.put, page, result.documents)
        except Exception as exc:
            logger.warning("[page %s] could not buffer page, skipping it: %s", page, exc)
            self._failed.add(page)

    def _iter_pages(self) -> Iterator[Tuple[int, Tuple[Any, ...]]]:
        for page in range(self.total_pages):
            if page in self._failed:
                continue
            if page not in self._store:
                logger.warning("[page %s] no result recorded; treating as failed", page)
                self._failed.add(page)
                continue
            try:
                documents = self._store.take(page)
            except AggregationError as exc:
                logger.warning("%s; page skipped", exc)
                self._failed.add(page)
                continue
            yield page, documents

    def iter_documents(self) -> Iterator[Any]:
        """Yield documents in page order, releasing each page's buffer as it goes."""
        for _, documents in self._iter_pages():
            for doc in documents:
                yield strip_nulls(doc)

    def documents(self) -> List[Any]:
        return list(self.iter_documents())

    def _iter_encoded_pages(self) -> Iterator[List[str]]:
        for page, documents in self._iter_pages():
            try:
                encoded = [encode_document(strip_nulls(doc)) for doc in documents]
            except ValueError as exc:
                logger.warning("[page %s] cannot be written as JSON, skipping it: %s", page, exc)
                self._failed.add(page)
                continue
            yield encoded

    def write(self, path: Path) -> int:
        """Stream the artifact to ``path`` atomically and return the document count."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        count = 0
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                fh.write('{"docs":[')
                for encoded in self._iter_encoded_pages():
                    for text in encoded:
                        if count:
                            fh.write(",")
                        fh.write(text)
                        count += 1
                fh.write("]}")
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("Wrote %s documents from %s pages → %s", count, self.total_pages, path)
        return count
