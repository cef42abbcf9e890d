"""Per-page crawl report (one row per page attempt)."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

import pandas as pd

from .models import PageResult


COLUMNS = ["page_index", "ok", "status_code", "elapsed_s", "doc_count", "error"]


def build_page_report(results: Iterable[PageResult], dropped: Iterable[int] = ()) -> pd.DataFrame:
    """One row per page; ``dropped`` marks fetched pages that never reached the artifact."""
    dropped = set(dropped)
    records = []
    for r in results:
        ok = bool(r.ok) and r.page_index not in dropped
        if r.ok:
            error = None if ok else "dropped during aggregation"
        else:
            error = r.error.reason
        records.append({
            "page_index": int(r.page_index),
            "ok": ok,
            "status_code": int(r.status_code),
            "elapsed_s": float(r.elapsed_s),
            "doc_count": len(r.documents) if ok else 0,
            "error": error,
        })
    df = pd.DataFrame.from_records(records, columns=COLUMNS)
    return df.sort_values("page_index").reset_index(drop=True)


def write_page_report(df: pd.DataFrame, path: Path, compression: str = "snappy") -> None:
    """Write ``df`` as parquet, or CSV when the suffix is .csv, via a temp file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    if path.suffix.lower() == ".csv":
        df.to_csv(tmp, index=False)
    else:
        df.to_parquet(tmp, index=False, compression=compression)
    os.replace(tmp, path)
    failed = int((~df["ok"]).sum()) if len(df) else 0
    logging.info("Wrote page report (%s pages, %s failed) to %s", len(df), failed, path)
