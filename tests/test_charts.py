"""Tests for charts.calculate_chart_data."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from focustimer.charts import calculate_chart_data
from focustimer.models import ChartRange, Session

TODAY = date(2026, 3, 10)


def _session(day: date, minutes: int = 25, status: str = "completed") -> Session:
    start = datetime(day.year, day.month, day.day, 9, 0)
    return Session.close(start, start + timedelta(minutes=minutes), planned_sec=None, status=status)


# ---- trailing day ranges ----


@pytest.mark.parametrize("rng,count", [(ChartRange.DAYS_7, 7), (ChartRange.DAYS_14, 14), (ChartRange.DAYS_30, 30)])
def test_trailing_bucket_counts(rng, count):
    points = calculate_chart_data([], rng, today=TODAY)
    assert len(points) == count
    assert points[-1].date == TODAY
    assert points[0].date == TODAY - timedelta(days=count - 1)
    assert all(p.value == 0 and p.completed_count == 0 for p in points)


def test_trailing_values():
    sessions = [_session(TODAY), _session(TODAY), _session(TODAY - timedelta(days=2), 10)]
    points = calculate_chart_data(sessions, ChartRange.DAYS_7, today=TODAY)
    assert points[-1].value == 3000
    assert points[-1].completed_count == 2
    assert points[-3].value == 600


def test_abandoned_not_counted():
    points = calculate_chart_data([_session(TODAY, status="abandoned")], "7", today=TODAY)
    assert points[-1].value == 0
    assert points[-1].completed_count == 0


def test_string_and_unknown_ranges():
    assert len(calculate_chart_data([], "30", today=TODAY)) == 30
    assert len(calculate_chart_data([], "bogus", today=TODAY)) == 14


# ---- month ----


def test_month_has_one_bucket_per_day():
    points = calculate_chart_data([], ChartRange.MONTH, today=TODAY)
    assert len(points) == 31
    assert points[0].date == date(2026, 3, 1)
    assert points[-1].date == date(2026, 3, 31)


def test_month_february():
    assert len(calculate_chart_data([], "month", today=date(2026, 2, 3))) == 28
    assert len(calculate_chart_data([], "month", today=date(2028, 2, 3))) == 29


def test_month_ignores_other_months():
    sessions = [_session(date(2026, 2, 28)), _session(date(2026, 3, 15))]
    points = calculate_chart_data(sessions, ChartRange.MONTH, today=TODAY)
    assert sum(p.value for p in points) == 1500
    assert points[14].completed_count == 1


# ---- year ----


def test_year_weeks_start_monday_before_jan1():
    # 2026-01-01 is a Thursday
    points = calculate_chart_data([], ChartRange.YEAR, today=TODAY)
    assert points[0].date == date(2025, 12, 29)
    assert all(p.date.weekday() == 0 for p in points)
    assert points[-1].date <= date(2026, 12, 31)
    assert len(points) == 53


def test_year_first_week_is_a_whole_week():
    sessions = [_session(date(2025, 12, 30)), _session(date(2026, 1, 2)), _session(date(2025, 12, 28))]
    points = calculate_chart_data(sessions, ChartRange.YEAR, today=TODAY)
    assert points[0].value == 3000
    assert points[0].completed_count == 2


def test_year_last_week_clipped():
    sessions = [_session(date(2026, 12, 31)), _session(date(2027, 1, 1))]
    points = calculate_chart_data(sessions, ChartRange.YEAR, today=TODAY)
    assert points[-1].value == 1500


def test_year_total_matches_sessions():
    sessions = [_session(date(2026, m, 5)) for m in range(1, 13)]
    points = calculate_chart_data(sessions, ChartRange.YEAR, today=TODAY)
    assert sum(p.value for p in points) == 12 * 1500
    assert sum(p.completed_count for p in points) == 12


def test_year_starting_on_monday():
    # 2024-01-01 is a Monday
    points = calculate_chart_data([], ChartRange.YEAR, today=date(2024, 6, 1))
    assert points[0].date == date(2024, 1, 1)


def test_values_non_negative():
    points = calculate_chart_data([_session(TODAY)], ChartRange.YEAR, today=TODAY)
    assert all(p.value >= 0 and p.completed_count >= 0 for p in points)


def test_point_to_dict():
    [point] = calculate_chart_data([_session(TODAY)], ChartRange.DAYS_7, today=TODAY)[-1:]
    assert point.to_dict() == {"date": "2026-03-10", "value": 1500, "completedCount": 1}
