"""
Statistics over the session log, anchored on a calendar day.

Only completed sessions count, for durations and for counts alike. A
session belongs to the local calendar date of its start.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from ._util import _now_local, local_date
from .models import Session


@dataclass
class DayTotal:
    seconds: int = 0
    completed: int = 0


@dataclass(frozen=True)
class DailyPoint:
    date: date
    total: int
    completed: int


@dataclass(frozen=True)
class Stats:
    base_date: date
    today: int
    today_completed: int
    yesterday: int
    yesterday_completed: int
    yesterday_diff: int
    yesterday_completed_diff: int
    avg_7_days: float
    avg_7_days_diff: float
    avg_7_days_completed: float
    avg_30_days: float
    avg_30_days_completed: float
    current_month_total: int
    current_month_completed: int
    avg_current_month: float
    avg_current_month_completed: float
    last_month_total: int
    last_month_completed: int
    avg_last_month: float
    avg_last_month_completed: float
    month_diff: float
    month_completed_diff: float
    year_total: int
    year_completed: int
    avg_year: float
    avg_year_completed: float
    last_14_days: list[DailyPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["base_date"] = self.base_date.isoformat()
        out["last_14_days"] = [
            {"date": p.date.isoformat(), "total": p.total, "completed": p.completed}
            for p in self.last_14_days
        ]
        return out


def daily_totals(sessions: Iterable[Session]) -> dict[date, DayTotal]:
    """Completed seconds and completed count per local start date."""
    by_day: dict[date, DayTotal] = defaultdict(DayTotal)
    for s in sessions:
        if not s.completed:
            continue
        bucket = by_day[local_date(s.start)]
        bucket.seconds += s.actual_sec
        bucket.completed += 1
    return dict(by_day)


def days_back(end: date, n: int) -> list[date]:
    """The n calendar days ending at `end`, oldest first."""
    return [end - timedelta(days=i) for i in range(n - 1, -1, -1)]


def _sum(by_day: dict[date, DayTotal], days: Iterable[date]) -> tuple[int, int]:
    seconds = 0
    completed = 0
    for d in days:
        t = by_day.get(d)
        if t is not None:
            seconds += t.seconds
            completed += t.completed
    return seconds, completed


def _month_days(year: int, month: int) -> list[date]:
    n = calendar.monthrange(year, month)[1]
    return [date(year, month, d) for d in range(1, n + 1)]


def calculate_stats(sessions: Iterable[Session], base_date: date | None = None) -> Stats:
    base = base_date or _now_local().date()
    by_day = daily_totals(sessions)

    today, today_completed = _sum(by_day, [base])
    yesterday, yesterday_completed = _sum(by_day, [base - timedelta(days=1)])

    week_seconds, week_completed = _sum(by_day, days_back(base, 7))
    avg_7 = week_seconds / 7
    avg_7_completed = week_completed / 7

    month30_seconds, month30_completed = _sum(by_day, days_back(base, 30))

    # calendar months divide by their real length
    this_month = _month_days(base.year, base.month)
    month_total, month_completed = _sum(by_day, this_month)
    avg_month = month_total / len(this_month)
    avg_month_completed = month_completed / len(this_month)

    prev_end = base.replace(day=1) - timedelta(days=1)
    prev_month = _month_days(prev_end.year, prev_end.month)
    last_total, last_completed = _sum(by_day, prev_month)
    avg_last = last_total / len(prev_month)
    avg_last_completed = last_completed / len(prev_month)

    year_start = date(base.year, 1, 1)
    days_in_year_so_far = (base - year_start).days + 1
    year_total, year_completed = _sum(by_day, days_back(base, days_in_year_so_far))

    last_14 = []
    for d in days_back(base, 14):
        t = by_day.get(d, DayTotal())
        last_14.append(DailyPoint(date=d, total=t.seconds, completed=t.completed))

    return Stats(
        base_date=base,
        today=today,
        today_completed=today_completed,
        yesterday=yesterday,
        yesterday_completed=yesterday_completed,
        yesterday_diff=today - yesterday,
        yesterday_completed_diff=today_completed - yesterday_completed,
        avg_7_days=avg_7,
        avg_7_days_diff=today - avg_7,
        avg_7_days_completed=avg_7_completed,
        avg_30_days=month30_seconds / 30,
        avg_30_days_completed=month30_completed / 30,
        current_month_total=month_total,
        current_month_completed=month_completed,
        avg_current_month=avg_month,
        avg_current_month_completed=avg_month_completed,
        last_month_total=last_total,
        last_month_completed=last_completed,
        avg_last_month=avg_last,
        avg_last_month_completed=avg_last_completed,
        month_diff=avg_month - avg_last,
        month_completed_diff=avg_month_completed - avg_last_completed,
        year_total=year_total,
        year_completed=year_completed,
        avg_year=year_total / days_in_year_so_far,
        avg_year_completed=year_completed / days_in_year_so_far,
        last_14_days=last_14,
    )
