"""
Ordered regex extraction over raw (often script-embedded) HTML.

Rendered marketplace pages keep the interesting fields inside inline JSON,
so each field gets a list of patterns tried in order; the first match that
passes the optional validator wins.
"""
from __future__ import annotations

import html
import re
from typing import Callable, Iterable, List, Optional, Pattern, Sequence

_UNICODE_ESCAPE = re.compile(r"\\u([0-9a-fA-F]{4})")


def decode_unicode(text: str) -> str:
    """Undo HTML entities and JSON ``\\uXXXX`` escapes, then drop stray backslashes."""
    if not text:
        return text
    decoded = html.unescape(text)
    decoded = _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), decoded)
    return decoded.replace("\\", "")


def compile_all(patterns: Iterable[str], flags: int = re.IGNORECASE) -> List[Pattern[str]]:
    return [re.compile(p, flags) for p in patterns]


def first_match(
    text: str,
    patterns: Sequence[Pattern[str]],
    validator: Optional[Callable[[str], bool]] = None,
) -> Optional[str]:
    """Return the decoded group(1) of the first acceptable match, or None."""
    if not text:
        return None
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = decode_unicode(match.group(1)).strip()
            if value and (validator is None or validator(value)):
                return value
    return None


def collect_matches(
    text: str,
    patterns: Sequence[Pattern[str]],
    limit: Optional[int] = None,
    group: int = 0,
) -> List[str]:
    """All distinct matches across patterns in pattern order, capped at ``limit``."""
    found: List[str] = []
    if not text:
        return found
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = decode_unicode(match.group(group))
            if value and value not in found:
                found.append(value)
                if limit is not None and len(found) >= limit:
                    return found
    return found
