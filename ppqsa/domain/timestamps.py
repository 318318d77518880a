"""
Timestamp parsing and recency ordering for persisted snapshots.

Stored timestamps are untrusted strings. A timestamp that parses always
counts as more recent than one that does not; two unparsable timestamps are
ordered by plain string comparison of the raw values.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime


def now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> float | None:
    """
    Epoch milliseconds for an ISO-8601 (or RFC 2822) string, else None.

    Naive timestamps are read as UTC.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.timestamp() * 1000.0
    except (OverflowError, ValueError, OSError):
        return None


def is_more_recent(candidate: str, current: str) -> bool:
    """True when ``candidate`` should replace ``current`` as the latest timestamp."""
    c = parse_timestamp(candidate)
    k = parse_timestamp(current)
    if c is None and k is None:
        return candidate > current
    if c is None:
        return False
    if k is None:
        return True
    return c > k


def chronological_key(value: str) -> tuple[int, float, str]:
    """
    Sort key for oldest-first ordering.

    Unparsable timestamps come first, ordered by raw string; parsed ones
    follow by time (equal times keep their input order under a stable sort).
    """
    t = parse_timestamp(value)
    if t is None:
        return (0, 0.0, value)
    return (1, t, "")


def sortable_time(value: str) -> float:
    """Parsed time, or -1 so unparsable timestamps sort as the oldest."""
    t = parse_timestamp(value)
    return -1.0 if t is None else t
