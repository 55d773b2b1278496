"""Time series buckets for the trend chart."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from ._util import _now_local
from .models import ChartRange, Session
from .stats import DayTotal, daily_totals, days_back

_TRAILING_DAYS = {
    ChartRange.DAYS_7: 7,
    ChartRange.DAYS_14: 14,
    ChartRange.DAYS_30: 30,
}


@dataclass(frozen=True)
class ChartPoint:
    date: date
    value: int
    completed_count: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "value": self.value, "completedCount": self.completed_count}


def _point(by_day: dict[date, DayTotal], d: date) -> ChartPoint:
    t = by_day.get(d, DayTotal())
    return ChartPoint(date=d, value=t.seconds, completed_count=t.completed)


def _weeks_of_year(by_day: dict[date, DayTotal], year: int) -> list[ChartPoint]:
    """
    One bucket per Monday-started week. The first bucket starts on the
    Monday on/before Jan 1; every bucket is clipped at Dec 31.
    """
    year_end = date(year, 12, 31)
    jan1 = date(year, 1, 1)
    week_start = jan1 - timedelta(days=jan1.weekday())

    points: list[ChartPoint] = []
    while week_start <= year_end:
        seconds = 0
        completed = 0
        d = week_start
        week_end = week_start + timedelta(days=6)
        while d <= week_end and d <= year_end:
            t = by_day.get(d)
            if t is not None:
                seconds += t.seconds
                completed += t.completed
            d += timedelta(days=1)
        points.append(ChartPoint(date=week_start, value=seconds, completed_count=completed))
        week_start += timedelta(days=7)
    return points


def calculate_chart_data(
    sessions: Iterable[Session],
    chart_range: ChartRange | str,
    today: date | None = None,
) -> list[ChartPoint]:
    """
    Buckets for `chart_range`, oldest first. Every bucket is present, empty
    ones at zero; only completed sessions are counted.
    """
    rng = ChartRange.from_setting(chart_range)
    today = today or _now_local().date()
    by_day = daily_totals(sessions)

    if rng in _TRAILING_DAYS:
        return [_point(by_day, d) for d in days_back(today, _TRAILING_DAYS[rng])]

    if rng is ChartRange.MONTH:
        n = calendar.monthrange(today.year, today.month)[1]
        return [_point(by_day, date(today.year, today.month, day)) for day in range(1, n + 1)]

    return _weeks_of_year(by_day, today.year)
