"""
Deduplication and stable-id helpers for scraped records.
"""
from __future__ import annotations

import hashlib
from typing import Callable, Hashable, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def make_digest(parts: Sequence[str], length: Optional[int] = None) -> str:
    joined = "|".join(part or "" for part in parts)
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()
    return digest[:length] if length else digest


def stable_id(prefix: str, url: str) -> str:
    """Deterministic record id: ``<prefix>-<first 16 hex chars of sha256(url)>``."""
    return f"{prefix}-{make_digest([url], length=16)}"


def dedupe_by_key(items: Iterable[T], key_fn: Callable[[T], Hashable], *, drop_empty: bool = False) -> List[T]:
    """Keep the first item per key, preserving order. Falsy keys are dropped when asked."""
    seen = set()
    result: List[T] = []
    for item in items:
        key = key_fn(item)
        if drop_empty and not key:
            continue
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def unique_strings(values: Iterable[Optional[str]], limit: Optional[int] = None) -> List[str]:
    """Order-preserving de-dup of non-empty strings, optionally capped."""
    result = dedupe_by_key((v for v in values if v), key_fn=lambda v: v)
    return result[:limit] if limit is not None else result
