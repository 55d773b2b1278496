"""Shared low-level time helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _now_local() -> datetime:
    return datetime.now().astimezone()


def local_date(dt: datetime) -> date:
    """Calendar date in local time; naive datetimes are taken as local already."""
    if dt.tzinfo is None:
        return dt.date()
    return dt.astimezone().date()


def _fmt_time(dt: datetime) -> str:
    # Windows-safe formatting
    try:
        return dt.astimezone().strftime("%-I:%M %p")
    except ValueError:
        return dt.astimezone().strftime("%I:%M %p").lstrip("0")


def format_clock(seconds: int) -> str:
    """H:MM:SS from one hour up, MM:SS below."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


def format_short(seconds: float) -> str:
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m = rem // 60
    if h > 0:
        return f"{h}h {m}m"
    return f"{m} min"
