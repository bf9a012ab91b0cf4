from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

EPOCH_ISO = datetime(1970, 1, 1, tzinfo=timezone.utc).isoformat()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def epoch_ms() -> int:
    return int(time.time() * 1000)


def unique_timestamp() -> int:
    """Microsecond timestamp used as the suffix of event ids."""
    return time.time_ns() // 1000


def from_epoch_seconds(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 string (with or without `Z`); unparseable values sort as the epoch."""
    if not value:
        return datetime(1970, 1, 1, tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime(1970, 1, 1, tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def upcoming_window(days: int = 6, today: Optional[datetime] = None) -> Tuple[str, str]:
    """Return (dateFrom, dateTo) as YYYY-MM-DD covering today through today + `days`."""
    start = (today or datetime.now()).date()
    end = start + timedelta(days=days)
    return start.isoformat(), end.isoformat()
