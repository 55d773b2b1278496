from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import re
import stat
import sys
from datetime import date, timedelta
from typing import Any

from ._util import _fmt_time, _now_local, format_clock, format_short, local_date
from .app import FocusApp
from .charts import calculate_chart_data
from .log import setup_logging
from .machine import Transition
from .models import MAX_FOCUS_MINUTES, ChartRange, Phase, Session, SessionStatus, TimerMode, UnknownFieldError
from .paths import DATA_ENV, resolve_data_path
from .safety import UnsafeDataPathError, assert_safe_data_path
from .stats import calculate_stats
from .storage import load_json
from .ticker import TickAction
from .timing import elapsed_seconds, is_overtime, remaining_seconds


# -------------------------
# Parsing helpers
# -------------------------

def _parse_minutes(value: str | None, arg_name: str) -> int | None:
    """
    Accepts:
      - None / "" -> None
      - "90" -> 90 minutes
      - "1:30" -> 1h 30m -> 90 minutes
      - "1h30m" / "2h" / "45m" -> parsed
    Raises SystemExit on bad format.
    """
    if value is None:
        return None

    s = str(value).strip().lower()
    if not s:
        return None

    if ":" in s:
        parts = s.split(":")
        if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
            h = int(parts[0])
            m = int(parts[1])
            if m >= 60:
                raise SystemExit(f"{arg_name} must be minutes, or H:MM like 1:30")
            return h * 60 + m
        raise SystemExit(f"{arg_name} must be minutes, or H:MM like 1:30")

    if s.isdigit():
        return int(s)

    m = re.fullmatch(r"(?:(\d+)\s*h)?\s*(?:(\d+)\s*m)?", s)
    if not m or not any(m.groups()):
        raise SystemExit(f"{arg_name} must be minutes, H:MM, or like 1h30m (got {value!r})")
    return int(m.group(1) or 0) * 60 + int(m.group(2) or 0)


def _parse_day(value: str | None) -> date:
    """today / yesterday / 'N days ago' / YYYY-MM-DD."""
    today = _now_local().date()
    if not value:
        return today
    s = value.strip().lower()
    if s == "today":
        return today
    if s == "yesterday":
        return today - timedelta(days=1)
    m = re.fullmatch(r"(\d+)\s*days?\s*ago", s)
    if m:
        return today - timedelta(days=int(m.group(1)))
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise SystemExit(f"Could not parse date {value!r}. Try 2026-02-25, yesterday, or '3 days ago'.")


def _parse_setting_value(raw: str) -> Any:
    """JSON if it parses (true, 25, {"name": "x"}), otherwise the plain string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _sparkline(values: list[float], vmin: float = 0.0, vmax: float | None = None) -> str:
    if not values:
        return ""
    blocks = "▁▂▃▄▅▆▇█"
    if vmax is None:
        vmax = max(values)
    span = max(1e-9, vmax - vmin)
    out = []
    for v in values:
        x = (v - vmin) / span
        idx = int(round(x * (len(blocks) - 1)))
        idx = max(0, min(len(blocks) - 1, idx))
        out.append(blocks[idx])
    return "".join(out)


def _signed_short(seconds: float) -> str:
    sign = "+" if seconds >= 0 else "-"
    return f"{sign}{format_short(abs(seconds))}"


# -------------------------
# Print blocks
# -------------------------

def _print_session_block(s: Session) -> None:
    icon = "✅" if s.completed else "🚫"
    print("```")
    print("📒 Focus Session")
    print(f"- 📅 Date: {local_date(s.start).isoformat()}")
    print(f"- 🕒 Time: {_fmt_time(s.start)} → {_fmt_time(s.end)}")
    print(f"- ⏱️ Focused: {format_short(s.actual_sec)}")
    if s.planned_sec is not None:
        print(f"- 🎯 Planned: {format_short(s.planned_sec)}")
    print(f"- {icon} Status: {s.status.value}")
    if s.note:
        print(f"- 📝 Task: {s.note}")
    print("```")


def _report(result: Transition, success: str) -> int:
    if result.failure is not None:
        print(f"⚠️ {result.failure.message}")
        return 1
    print(success)
    return 0


# -------------------------
# Timer commands
# -------------------------

async def cmd_start(app: FocusApp, args: argparse.Namespace) -> int:
    settings = await app.store.read_settings()
    note = args.note or ""
    planned_min = _parse_minutes(args.minutes, "--minutes")
    if planned_min is not None:
        planned_min = max(1, min(MAX_FOCUS_MINUTES, planned_min))

    if args.quick:
        timer = settings.quick_timers()[args.quick - 1]
        if not timer.name.strip():
            raise SystemExit(f"Quick timer {args.quick} has no name; set quickTimer{args.quick} first.")
        planned_min = timer.minutes
        note = note or timer.name
        mode = TimerMode.COUNTDOWN
    elif args.stopwatch:
        mode = TimerMode.STOPWATCH
    elif planned_min is not None:
        mode = TimerMode.COUNTDOWN
    else:
        mode = None

    planned_sec = planned_min * 60 if planned_min is not None else None
    result = await app.machine.start_focus(planned_sec, mode, note)
    if result.ok and result.state.mode is TimerMode.STOPWATCH:
        return _report(result, "⏱️ Stopwatch started.")
    minutes = round((result.state.planned_sec or 0) / 60)
    return _report(result, f"🍅 Focus started: {minutes} min.")


async def cmd_stop(app: FocusApp, args: argparse.Namespace) -> int:
    status = SessionStatus.ABANDONED if args.abandon else SessionStatus.COMPLETED
    result = await app.machine.stop_focus(status)
    if not result.ok or result.session is None:
        return _report(result, "")
    mins = round(result.session.actual_sec / 60)
    msg = f"🏁 Focus {status.value}: {mins} min."
    if result.state.phase is Phase.RESTING:
        msg += f" Resting {round((result.state.rest_sec or 0) / 60)} min."
    return _report(result, msg)


async def cmd_rest_start(app: FocusApp, args: argparse.Namespace) -> int:
    minutes = _parse_minutes(args.minutes, "--minutes")
    result = await app.machine.start_rest(minutes)
    return _report(result, f"☕ Rest started: {round((result.state.rest_sec or 0) / 60)} min.")


async def cmd_rest_stop(app: FocusApp, args: argparse.Namespace) -> int:
    return _report(await app.machine.stop_rest(), "☕ Rest ended.")


async def cmd_status(app: FocusApp, args: argparse.Namespace) -> int:
    state = await app.store.read_state()
    now = app.machine.clock()
    elapsed = elapsed_seconds(state, now)

    if state.phase is Phase.IDLE:
        print("💤 Idle")
    elif state.phase is Phase.RESTING:
        print(f"☕ Resting: {format_clock(remaining_seconds(state, now) or 0)} left")
    elif state.is_stopwatch:
        print(f"⏱️ Stopwatch: {format_clock(elapsed)}")
    else:
        label = "⏰ Overtime" if is_overtime(state, now) else "🍅 Focusing"
        print(f"{label}: {format_clock(elapsed)} / {format_clock(state.planned_sec or 0)}")
    if state.phase is Phase.FOCUSING and state.note:
        print(f"- 📝 Task: {state.note}")
    return 0


async def cmd_watch(app: FocusApp, args: argparse.Namespace) -> int:
    messages = {
        TickAction.AUTO_COMPLETED: "🏁 Countdown finished; session completed.",
        TickAction.STOPWATCH_CAPPED: "🏁 Stopwatch reached 600 minutes; session completed.",
        TickAction.REST_FINISHED: "☕ Rest finished.",
    }

    def on_action(action: TickAction) -> None:
        if action in messages:
            print(messages[action], flush=True)

    app.ticker.interval = args.interval
    app.ticker.on_action = on_action
    print(f"👀 Watching {app.store.path} every {args.interval}s (Ctrl-C to stop)")
    await app.ticker.run()
    return 0


# -------------------------
# History + stats commands
# -------------------------

async def cmd_sessions(app: FocusApp, args: argparse.Namespace) -> int:
    sessions = await app.store.read_sessions()
    if not sessions:
        print("No focus sessions yet.")
        return 0

    newest = list(reversed(sessions))[: args.limit]
    if args.format == "block":
        for s in newest:
            _print_session_block(s)
        return 0

    print("=== Focus Sessions (newest first) ===")
    for s in newest:
        line = f"{local_date(s.start).isoformat()} {_fmt_time(s.start)} — {format_short(s.actual_sec)} {s.status.value}"
        if s.note:
            line += f" ({s.note})"
        print(line)
    return 0


async def cmd_stats(app: FocusApp, args: argparse.Namespace) -> int:
    sessions = await app.store.read_sessions()
    base = _parse_day(args.date)
    st = calculate_stats(sessions, base)

    if args.json:
        print(json.dumps(st.to_dict(), indent=2))
        return 0

    print(f"=== Focus Stats ({base.isoformat()}) ===")
    print(f"- today: {format_short(st.today)} ({st.today_completed} completed)")
    print(f"- vs yesterday: {_signed_short(st.yesterday_diff)} ({st.yesterday_completed_diff:+d} completed)")
    print(f"- 7-day average: {format_short(st.avg_7_days)}/day (today {_signed_short(st.avg_7_days_diff)})")
    print(f"- this month: {format_short(st.avg_current_month)}/day ({st.avg_current_month_completed:.2f} completed/day)")
    print(f"- last month: {format_short(st.avg_last_month)}/day ({st.avg_last_month_completed:.2f} completed/day)")
    print(f"- month over month: {_signed_short(st.month_diff)}/day")
    print(f"- this year: {format_short(st.year_total)} total, {st.year_completed} completed, "
          f"{format_short(st.avg_year)}/day")

    print("\n[Last 14 days]")
    print(f"- sparkline: {_sparkline([p.total for p in st.last_14_days])}")
    for p in st.last_14_days:
        print(f"- {p.date.isoformat()}: {format_short(p.total)} ({p.completed} completed)")
    return 0


async def cmd_chart(app: FocusApp, args: argparse.Namespace) -> int:
    sessions = await app.store.read_sessions()
    if args.range:
        rng = ChartRange.from_setting(args.range)
    else:
        rng = (await app.store.read_settings()).default_chart_range
    points = calculate_chart_data(sessions, rng)

    if args.json:
        print(json.dumps([p.to_dict() for p in points], indent=2))
        return 0

    unit = "week of" if rng is ChartRange.YEAR else "day"
    print(f"=== Focus Chart ({rng.value}) ===")
    print(f"- sparkline: {_sparkline([p.value for p in points])}")
    peak = max((p.value for p in points), default=0)
    for p in points:
        bar = "▇" * (round(p.value / peak * 30) if peak else 0)
        print(f"{unit} {p.date.isoformat()}: {format_short(p.value):>8} {p.completed_count:>3} {bar}")
    return 0


# -------------------------
# Settings commands
# -------------------------

async def cmd_settings_show(app: FocusApp, args: argparse.Namespace) -> int:
    settings = await app.store.read_settings()
    print(json.dumps(settings.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))
    return 0


async def cmd_settings_set(app: FocusApp, args: argparse.Namespace) -> int:
    value = _parse_setting_value(args.value)
    try:
        settings = await app.store.write_settings(**{args.key: value})
    except UnknownFieldError:
        raise SystemExit(f"Unknown setting {args.key!r}. See `ft settings show`.")
    shown = settings.model_dump(mode="json", by_alias=True)
    print(f"⚙️ Saved. Settings now: {json.dumps(shown, ensure_ascii=False)}")
    return 0


# -------------------------
# Core commands
# -------------------------

async def cmd_init(app: FocusApp, args: argparse.Namespace) -> int:
    created = await app.store.ensure_initialized()
    if created:
        print(f"✅ Initialized data file: {app.store.path}")
    else:
        print(f"✅ Data file already exists: {app.store.path}")
    return 0


async def cmd_where(app: FocusApp, args: argparse.Namespace) -> int:
    env = os.environ.get(DATA_ENV)
    if args.data_arg:
        reason = "because you passed --data"
    elif env:
        reason = f"because {DATA_ENV} is set"
    elif args.profile:
        reason = f"because you used --profile {args.profile!r}"
    else:
        reason = "default XDG config location"

    print(app.store.path)
    print(f"↳ using {reason}")
    return 0


async def cmd_doctor(app: FocusApp, args: argparse.Namespace) -> int:
    print("=== focustimer doctor ===")
    print("✅ Data path safety guard: OK")

    result = await asyncio.to_thread(load_json, app.store.path)
    if result.missing:
        print("⚠️ Data file missing (run `ft init`)")
    elif result.corrupted is not None:
        print(f"⚠️ Data file corrupt: {result.corrupted.reason} (defaults will be used; next write backs it up)")
    else:
        record = await app.store.read_record()
        print(f"✅ Record readable: {len(record.sessions)} sessions, state {record.state.phase.value}")
        try:
            perms = stat.S_IMODE(app.store.path.stat().st_mode)
            print(f"🔐 File permissions: {oct(perms)} (target 0o600)")
        except FileNotFoundError:
            pass

    print("=== Done ===")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ft", description="Focus timer: sessions, rests and statistics")
    p.add_argument("--data", default=None, help="Path to data JSON (overrides env/default)")
    p.add_argument("--profile", default=None, help="Profile name (e.g. dev/test)")
    p.add_argument("--allow-repo-data-path", action="store_true", help="Override safety guard (not recommended)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug)")
    p.add_argument("--log-file", default=None, help="Also log to this rotating file")

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("init", help="Create the data file if missing").set_defaults(func=cmd_init)
    sub.add_parser("where", help="Show which data file is active and why").set_defaults(func=cmd_where)
    sub.add_parser("doctor", help="Run safety + health checks").set_defaults(func=cmd_doctor)
    sub.add_parser("status", help="Show the running timer").set_defaults(func=cmd_status)

    start = sub.add_parser("start", help="Start a focus session")
    start.add_argument("--minutes", default=None, help="Countdown length (minutes, H:MM, or 1h30m)")
    start.add_argument("--stopwatch", action="store_true", help="Open-ended session (capped at 600 minutes)")
    start.add_argument("--quick", type=int, choices=[1, 2, 3], default=None, help="Use a quick timer preset")
    start.add_argument("--note", default=None, help="What you are working on")
    start.set_defaults(func=cmd_start)

    stop = sub.add_parser("stop", help="Finish the running focus session")
    stop.add_argument("--abandon", action="store_true", help="Record it as abandoned")
    stop.set_defaults(func=cmd_stop)

    rest = sub.add_parser("rest", help="Rest timer")
    rest_sub = rest.add_subparsers(dest="rest_cmd", required=True)
    rest_start = rest_sub.add_parser("start", help="Start a rest")
    rest_start.add_argument("--minutes", default=None, help="Rest length (default from settings)")
    rest_start.set_defaults(func=cmd_rest_start)
    rest_sub.add_parser("stop", help="End the rest").set_defaults(func=cmd_rest_stop)

    watch = sub.add_parser("watch", help="Keep running: auto-complete timers and end rests")
    watch.add_argument("--interval", type=float, default=1.0, help="Seconds between checks")
    watch.set_defaults(func=cmd_watch)

    sessions = sub.add_parser("sessions", help="List recorded sessions")
    sessions.add_argument("--limit", type=int, default=50)
    sessions.add_argument("--format", choices=["line", "block"], default="line")
    sessions.set_defaults(func=cmd_sessions)

    stats = sub.add_parser("stats", help="Daily, weekly, monthly and yearly statistics")
    stats.add_argument("--date", default=None, help="Anchor day: YYYY-MM-DD, yesterday, '3 days ago'")
    stats.add_argument("--json", action="store_true")
    stats.set_defaults(func=cmd_stats)

    chart = sub.add_parser("chart", help="Focus time series")
    chart.add_argument("--range", choices=[r.value for r in ChartRange], default=None,
                       help="7, 14, 30, month or year (default from settings)")
    chart.add_argument("--json", action="store_true")
    chart.set_defaults(func=cmd_chart)

    settings = sub.add_parser("settings", help="Show or change settings")
    settings_sub = settings.add_subparsers(dest="settings_cmd", required=True)
    settings_sub.add_parser("show", help="Print all settings").set_defaults(func=cmd_settings_show)
    settings_set = settings_sub.add_parser("set", help="Change one setting (e.g. autoRest true)")
    settings_set.add_argument("key")
    settings_set.add_argument("value")
    settings_set.set_defaults(func=cmd_settings_set)

    return p


def main(argv=None) -> None:
    p = build_parser()
    args = p.parse_args(argv)

    level = None
    if args.verbose:
        level = logging.DEBUG if args.verbose > 1 else logging.INFO
    setup_logging(level, args.log_file)

    args.data_arg = args.data
    data_path = resolve_data_path(args.data, args.profile)

    try:
        assert_safe_data_path(data_path, args.allow_repo_data_path)
    except UnsafeDataPathError as e:
        print("🚫 Refusing to use a data file inside a git repo.", file=sys.stderr)
        print(f"   data_path: {e.data_path}", file=sys.stderr)
        print(f"   repo_root: {e.repo_root}", file=sys.stderr)
        print("   Fix: use ~/.config/focustimer/*.json or pass --allow-repo-data-path", file=sys.stderr)
        raise SystemExit(2)

    app = FocusApp.open(data_path)
    try:
        code = asyncio.run(args.func(app, args))
    except KeyboardInterrupt:
        code = 130
    raise SystemExit(code)


if __name__ == "__main__":
    main()
