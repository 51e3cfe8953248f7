from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_timezone(value: Any, default: str = "UTC") -> tzinfo:
    """Turn an IANA name or a UTC offset into a tzinfo.

    IANA names ('America/New_York') are tried first, then offsets such as
    '+07:00', '-5' or minutes ('420'). Anything unparseable resolves to
    ``default``.
    """
    if isinstance(value, tzinfo):
        return value

    tz_str = str(value).strip() if value is not None else ""
    if not tz_str:
        tz_str = default
    if tz_str.lower() == "utc":
        return timezone.utc

    try:
        return ZoneInfo(tz_str)
    except (ZoneInfoNotFoundError, ValueError):
        pass

    offset = _parse_offset(tz_str)
    if offset is not None:
        return timezone(offset)

    if tz_str != default:
        return resolve_timezone(default, default="UTC")
    return timezone.utc


def _parse_offset(value: str) -> timedelta | None:
    sign = 1
    raw = value
    if raw.startswith("-"):
        sign, raw = -1, raw[1:]
    elif raw.startswith("+"):
        raw = raw[1:]

    try:
        if ":" in raw:
            hours_str, minutes_str = raw.split(":", 1)
            delta = timedelta(hours=int(hours_str), minutes=int(minutes_str))
        elif raw.isdigit() and len(raw) <= 2:
            delta = timedelta(hours=int(raw))
        else:
            delta = timedelta(minutes=int(raw))
    except ValueError:
        return None

    delta = sign * delta
    if abs(delta) >= timedelta(hours=24):
        return None
    return delta


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def describe_now(tz_name: str, now: datetime | None = None) -> tuple[str, str]:
    """Return (local description, UTC ISO instant) for prompts."""
    now = now or utc_now()
    tz = resolve_timezone(tz_name, default="America/New_York")
    local = now.astimezone(tz)
    local_text = local.strftime("%A, %B %d, %Y %I:%M %p") + f" ({tz_name})"
    return local_text, now.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
