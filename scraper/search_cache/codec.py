"""Strict JSON decoding of page bodies and encoding of artifact documents."""

from __future__ import annotations

import json
from typing import Any


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def decode_body(content: bytes) -> Any:
    """Parse a response body, refusing NaN, Infinity and -Infinity."""
    return json.loads(content, parse_constant=_reject_constant)


def encode_document(value: Any) -> str:
    """Compact JSON for one document; raises ValueError if it cannot be written as UTF-8 JSON."""
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    # Lone surrogates survive json.loads but not the UTF-8 file
    text.encode("utf-8")
    return text
