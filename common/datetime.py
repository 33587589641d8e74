"""Datetime helpers common to the allocation services.

Currently provides:
    parse_iso8601(s): robust ISO-8601 parser that always returns an *aware* UTC
    datetime instance.
    parse_timestamp(s): accepts unix epoch seconds (the format margin-call and
    sweep timestamps travel in) or an ISO-8601 string.

This avoids scattered direct calls to dateutil.parser.isoparse or
datetime.fromisoformat, giving us a single spot to patch if behavior changes.
"""
from __future__ import annotations

import datetime as _dt
from typing import Union

from dateutil.parser import isoparse as _isoparse

__all__ = ["parse_iso8601", "parse_timestamp"]


def _ensure_utc(dt: _dt.datetime) -> _dt.datetime:
    """Return *dt* converted to UTC and TZ-aware."""
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        # naive → assume already UTC
        return dt.replace(tzinfo=_dt.timezone.utc)
    # convert
    return dt.astimezone(_dt.timezone.utc)


def parse_iso8601(value: Union[str, _dt.datetime]) -> _dt.datetime:
    """Parse *value* into a timezone-aware UTC datetime.

    Accepts ISO-8601 strings or datetime objects. If *value* is already a
    datetime, it will be normalised to UTC.
    """
    if isinstance(value, _dt.datetime):
        return _ensure_utc(value)

    if not isinstance(value, str):
        raise TypeError("parse_iso8601 expects str or datetime, got " + type(value).__name__)

    try:
        dt = _isoparse(value)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"invalid ISO-8601 datetime: {value}") from exc

    return _ensure_utc(dt)


def parse_timestamp(value: Union[str, int, _dt.datetime]) -> _dt.datetime:
    """Parse unix epoch seconds or ISO-8601 into an aware UTC datetime."""
    if isinstance(value, _dt.datetime):
        return _ensure_utc(value)
    if isinstance(value, int):
        return _dt.datetime.fromtimestamp(value, tz=_dt.timezone.utc)
    if not isinstance(value, str):
        raise TypeError("parse_timestamp expects str, int or datetime, got " + type(value).__name__)

    text = value.strip()
    if text.lstrip("-").isdigit():
        return _dt.datetime.fromtimestamp(int(text), tz=_dt.timezone.utc)
    return parse_iso8601(text)
