"""Per-page buffers used while pages arrive out of order.

The aggregator only needs "put documents for page i" and "take documents
for page i"; where they live is decided here. ``take`` hands the page back
and releases its storage in one step.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Set, Tuple

import pandas as pd

from .config import APPROX_DOC_BYTES, CrawlConfig
from .errors import AggregationError


logger = logging.getLogger(__name__)


class PageStore:
    def put(self, page_index: int, documents: Sequence[Any]) -> None:
        raise NotImplementedError

    def take(self, page_index: int) -> Tuple[Any, ...]:
        raise NotImplementedError

    def __contains__(self, page_index: int) -> bool:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> "PageStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MemoryPageStore(PageStore):
    def __init__(self) -> None:
        self._pages: Dict[int, Tuple[Any, ...]] = {}

    def put(self, page_index: int, documents: Sequence[Any]) -> None:
        self._pages[page_index] = tuple(documents)

    def take(self, page_index: int) -> Tuple[Any, ...]:
        return self._pages.pop(page_index)

    def __contains__(self, page_index: int) -> bool:
        return page_index in self._pages

    def __len__(self) -> int:
        return len(self._pages)

    def close(self) -> None:
        self._pages.clear()


class SpillPageStore(PageStore):
    """One parquet file per page (column ``doc_json``, one row per document)."""

    COLUMN = "doc_json"

    def __init__(self, directory: Optional[Path] = None, compression: str = "snappy"):
        if directory is None:
            self.directory = Path(tempfile.mkdtemp(prefix="search_cache_"))
            self._owns_directory = True
        else:
            self.directory = Path(directory)
            self.directory.mkdir(parents=True, exist_ok=True)
            self._owns_directory = False
        self.compression = compression
        self._files: Dict[int, Path] = {}
        # Empty pages are tracked without a file
        self._empty: Set[int] = set()

    def _path(self, page_index: int) -> Path:
        return self.directory / f"page_{page_index:06d}.parquet"

    def put(self, page_index: int, documents: Sequence[Any]) -> None:
        if not documents:
            self._empty.add(page_index)
            return
        df = pd.DataFrame({self.COLUMN: [json.dumps(d, ensure_ascii=False) for d in documents]})
        path = self._path(page_index)
        df.to_parquet(path, index=False, compression=self.compression)
        self._files[page_index] = path

    def take(self, page_index: int) -> Tuple[Any, ...]:
        if page_index in self._empty:
            self._empty.discard(page_index)
            return ()
        path = self._files.pop(page_index)
        try:
            df = pd.read_parquet(path, columns=[self.COLUMN])
            return tuple(json.loads(raw) for raw in df[self.COLUMN].tolist())
        except Exception as exc:
            raise AggregationError(page_index, f"{type(exc).__name__}: {exc}") from exc
        finally:
            path.unlink(missing_ok=True)

    def __contains__(self, page_index: int) -> bool:
        return page_index in self._files or page_index in self._empty

    def __len__(self) -> int:
        return len(self._files) + len(self._empty)

    def close(self) -> None:
        for path in self._files.values():
            path.unlink(missing_ok=True)
        self._files.clear()
        self._empty.clear()
        if self._owns_directory:
            shutil.rmtree(self.directory, ignore_errors=True)


def select_store(config: CrawlConfig, total_pages: int) -> PageStore:
    """Pick the buffer for this run from ``config.buffer``.

    ``auto`` spills to disk when the estimated payload exceeds the memory limit.
    """
    mode = config.buffer
    if mode == "auto":
        estimate = total_pages * config.page_size * APPROX_DOC_BYTES
        mode = "disk" if estimate > config.memory_limit_bytes else "memory"
        logger.info(
            "Buffer policy auto: estimate=%.1f MiB limit=%.1f MiB → %s",
            estimate / 1048576,
            config.memory_limit_bytes / 1048576,
            mode,
        )
    if mode == "disk":
        store = SpillPageStore()
        logger.info("Spilling page buffers to %s", store.directory)
        return store
    return MemoryPageStore()
