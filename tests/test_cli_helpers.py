"""Tests for pure-logic helpers in cli.py."""

from __future__ import annotations

from datetime import timedelta

import pytest

from focustimer._util import _now_local, format_clock, format_short
from focustimer.cli import _parse_day, _parse_minutes, _parse_setting_value, _report, _signed_short, _sparkline
from focustimer.machine import Failure, Transition
from focustimer.models import ActiveState

# ---- _parse_minutes ----


def test_parse_minutes_none():
    assert _parse_minutes(None, "--x") is None


def test_parse_minutes_blank():
    assert _parse_minutes("  ", "--x") is None


def test_parse_minutes_plain_int():
    assert _parse_minutes("90", "--x") == 90


def test_parse_minutes_hhmm():
    assert _parse_minutes("1:30", "--x") == 90


def test_parse_minutes_hm_both():
    assert _parse_minutes("1h30m", "--x") == 90


def test_parse_minutes_hours_only():
    assert _parse_minutes("2h", "--x") == 120


def test_parse_minutes_minutes_only():
    assert _parse_minutes("45m", "--x") == 45


def test_parse_minutes_bad_raises():
    with pytest.raises(SystemExit):
        _parse_minutes("abc", "--x")


def test_parse_minutes_bad_hhmm_raises():
    with pytest.raises(SystemExit):
        _parse_minutes("7:75", "--x")


# ---- _parse_day ----


def test_parse_day_default_today():
    assert _parse_day(None) == _now_local().date()


def test_parse_day_yesterday():
    assert _parse_day("yesterday") == _now_local().date() - timedelta(days=1)


def test_parse_day_days_ago():
    assert _parse_day("3 days ago") == _now_local().date() - timedelta(days=3)


def test_parse_day_iso():
    assert _parse_day("2026-02-25").isoformat() == "2026-02-25"


def test_parse_day_bad_raises():
    with pytest.raises(SystemExit):
        _parse_day("next tuesday")


# ---- _parse_setting_value ----


def test_setting_value_json_scalars():
    assert _parse_setting_value("true") is True
    assert _parse_setting_value("25") == 25


def test_setting_value_json_object():
    assert _parse_setting_value('{"name": "Deep", "minutes": 50}') == {"name": "Deep", "minutes": 50}


def test_setting_value_plain_string():
    assert _parse_setting_value("stopwatch") == "stopwatch"


# ---- formatting ----


def test_format_clock():
    assert format_clock(65) == "01:05"
    assert format_clock(3725) == "1:02:05"
    assert format_clock(-4) == "00:00"


def test_format_short():
    assert format_short(1500) == "25 min"
    assert format_short(5400) == "1h 30m"


def test_signed_short():
    assert _signed_short(600) == "+10 min"
    assert _signed_short(-3600) == "-1h 0m"


# ---- _sparkline ----


def test_sparkline_empty():
    assert _sparkline([]) == ""


def test_sparkline_length_matches_input():
    assert len(_sparkline([1.0, 5.0, 10.0])) == 3


def test_sparkline_zero_is_lowest_block():
    result = _sparkline([0.0, 10.0])
    assert result[0] == "▁"
    assert result[1] == "█"


def test_sparkline_all_zero():
    assert _sparkline([0, 0, 0]) == "▁▁▁"


def test_sparkline_custom_range():
    result = _sparkline([0.0, 100.0], vmin=0.0, vmax=100.0)
    assert result == "▁█"


# ---- _report ----


def test_report_success(capsys):
    assert _report(Transition(ok=True, state=ActiveState()), "done") == 0
    assert capsys.readouterr().out.strip() == "done"


def test_report_failure_prints_message(capsys):
    result = Transition.rejected(Failure.NOT_RESTING, ActiveState())
    assert _report(result, "done") == 1
    out = capsys.readouterr().out
    assert Failure.NOT_RESTING.message in out
    assert "done" not in out
