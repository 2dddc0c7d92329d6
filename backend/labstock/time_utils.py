"""
Timestamp helpers.

Timestamps are stored as naive UTC datetimes and leave the API (and backup
files) as ISO-8601 strings with a trailing "Z", e.g. "2026-10-18T09:30:00Z".
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read an ISO-8601 timestamp as naive UTC.

    Blank input yields None. Offsets (including "Z") are folded into UTC;
    a value without an offset is taken to be UTC already. Raises ValueError
    for anything datetime.fromisoformat rejects.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    return _as_naive_utc(moment).isoformat() + "Z"
