"""UTC timestamp helpers shared by the store and the runners."""

from __future__ import annotations

import datetime as dt
from typing import Optional


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def to_iso(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[dt.datetime]:
    """Parse an ISO timestamp; naive values are taken as UTC.

    Raises ValueError for anything that is not an ISO 8601 date-time.
    """
    if not value:
        return None
    if value.endswith(("Z", "z")):
        # fromisoformat only learned the Zulu suffix in Python 3.11.
        value = value[:-1] + "+00:00"
    parsed = dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed
