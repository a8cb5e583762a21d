"""Time helpers for log records and CHAOS API timestamps."""

from __future__ import annotations

import re
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from aaisp_exporter.common.constants import UPSTREAM_TIMESTAMP_FORMAT, UPSTREAM_TIMEZONE
from aaisp_exporter.common.errors import DecodeError

_UPSTREAM_TIMESTAMP_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}:[0-9]{2}")


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def upstream_zone() -> tzinfo | None:
    """Return the UK zone, or None when no zone database is installed."""
    try:
        return ZoneInfo(UPSTREAM_TIMEZONE)
    except ZoneInfoNotFoundError:
        return None


def parse_upstream_timestamp(value: object) -> datetime:
    """Parse a CHAOS ``YYYY-MM-DD HH:MM:SS`` string as UK civil time.

    The API reports wall-clock time in Europe/London without an offset, so the
    result carries GMT in winter and BST in summer. Without zone data the
    process's local zone is used instead.
    """
    if not isinstance(value, str) or not _UPSTREAM_TIMESTAMP_RE.fullmatch(value):
        raise DecodeError(f"invalid timestamp: {value!r}")
    try:
        naive = datetime.strptime(value, UPSTREAM_TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise DecodeError(f"invalid timestamp: {value!r}") from exc

    zone = upstream_zone()
    if zone is None:
        return naive.astimezone()
    return naive.replace(tzinfo=zone)
