"""
Record schema: the active state, the session log and settings, persisted
together as one JSON object. Field names on disk are camelCase; Python code
uses the snake_case attributes.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_SUGGEST_TASKS = 100
MAX_FOCUS_MINUTES = 600
NOTE_ASCII_LIMIT = 40
NOTE_OTHER_LIMIT = 10

DEFAULT_DURATION_MINUTES = 25
DEFAULT_REST_MINUTES = 5
DEFAULT_ADJUST_STEP_MINUTES = 5

M = TypeVar("M", bound=BaseModel)


class UnknownFieldError(KeyError):
    """A merge named a field the section does not have."""


class SessionStatus(str, Enum):
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class TimerMode(str, Enum):
    COUNTDOWN = "countdown"
    STOPWATCH = "stopwatch"


class Phase(str, Enum):
    IDLE = "idle"
    FOCUSING = "focusing"
    RESTING = "resting"


class ChartRange(str, Enum):
    DAYS_7 = "7"
    DAYS_14 = "14"
    DAYS_30 = "30"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def from_setting(cls, value: Any) -> ChartRange:
        """Short key, enum member or a legacy display label; anything else -> 14 days."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.DAYS_14
        return _CHART_RANGE_LABELS.get(str(value).strip().lower(), cls.DAYS_14)


_CHART_RANGE_LABELS: dict[str, ChartRange] = {
    "7": ChartRange.DAYS_7,
    "7天": ChartRange.DAYS_7,
    "7 days": ChartRange.DAYS_7,
    "14": ChartRange.DAYS_14,
    "14天": ChartRange.DAYS_14,
    "14 days": ChartRange.DAYS_14,
    "30": ChartRange.DAYS_30,
    "30天": ChartRange.DAYS_30,
    "30 days": ChartRange.DAYS_30,
    "month": ChartRange.MONTH,
    "本月": ChartRange.MONTH,
    "this month": ChartRange.MONTH,
    "year": ChartRange.YEAR,
    "今年": ChartRange.YEAR,
    "this year": ChartRange.YEAR,
}


# -------------------------
# Text helpers
# -------------------------

def limit_note(text: str | None) -> str:
    """
    Strip and cut a task note: at most 40 ASCII characters and at most 10
    other characters. Cuts at the first character that would overflow
    either budget.
    """
    if not text:
        return ""
    ascii_count = 0
    other_count = 0
    out: list[str] = []
    for ch in text.strip():
        if ord(ch) <= 127:
            if ascii_count >= NOTE_ASCII_LIMIT:
                break
            ascii_count += 1
        else:
            if other_count >= NOTE_OTHER_LIMIT:
                break
            other_count += 1
        out.append(ch)
    return "".join(out)


def remember_suggestion(tasks: list[str], note: str) -> list[str]:
    """Most-recently-used first, no duplicates, at most MAX_SUGGEST_TASKS."""
    note = note.strip()
    if not note:
        return list(tasks)
    rest = [t for t in tasks if t != note]
    return [note, *rest][:MAX_SUGGEST_TASKS]


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


_TRUE_WORDS = {"true", "1", "yes", "on", "y", "t"}
_FALSE_WORDS = {"false", "0", "no", "off", "n", "f"}


def _flag(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


# -------------------------
# Models
# -------------------------

class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Session(_Model):
    """One closed focus interval. Never edited after it is appended."""

    model_config = ConfigDict(frozen=True)

    id: str
    start: datetime
    end: datetime
    planned_sec: Optional[int] = Field(default=None, ge=0)
    actual_sec: int = Field(ge=0)
    status: SessionStatus
    note: str = ""
    created_at: datetime

    @classmethod
    def close(
        cls,
        start: datetime,
        end: datetime,
        *,
        planned_sec: int | None,
        status: SessionStatus,
        note: str = "",
        created_at: datetime | None = None,
    ) -> Session:
        actual = max(0, math.floor((end - start).total_seconds()))
        return cls(
            id=start.isoformat(),
            start=start,
            end=end,
            planned_sec=planned_sec,
            actual_sec=actual,
            status=status,
            note=note,
            created_at=created_at or end,
        )

    @property
    def completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED


class ActiveState(_Model):
    active: bool = False
    resting: bool = False
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    planned_sec: Optional[int] = Field(default=None, ge=0)
    mode: Optional[TimerMode] = None
    note: str = ""
    rest_start: Optional[datetime] = None
    rest_end: Optional[datetime] = None
    rest_sec: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _one_phase(self) -> ActiveState:
        if self.active and self.resting:
            raise ValueError("state cannot be focusing and resting at once")
        if self.active and self.start is None:
            raise ValueError("focusing state needs a start time")
        return self

    @property
    def phase(self) -> Phase:
        if self.active:
            return Phase.FOCUSING
        if self.resting:
            return Phase.RESTING
        return Phase.IDLE

    @property
    def is_stopwatch(self) -> bool:
        return self.mode is TimerMode.STOPWATCH or (self.mode is None and self.planned_sec is None)


class QuickTimer(_Model):
    name: str = ""
    minutes: int = DEFAULT_DURATION_MINUTES

    @field_validator("name", mode="before")
    @classmethod
    def _limit_name(cls, v: Any) -> str:
        return limit_note(v) if isinstance(v, str) else ""

    @field_validator("minutes", mode="before")
    @classmethod
    def _clamp_minutes(cls, v: Any) -> int:
        n = _number(v)
        if n is None or n <= 0:
            return DEFAULT_DURATION_MINUTES
        return min(max(1, math.floor(n)), MAX_FOCUS_MINUTES)


class Settings(_Model):
    auto_continue: bool = False
    default_mode: TimerMode = TimerMode.COUNTDOWN
    adjust_step_minutes: int = DEFAULT_ADJUST_STEP_MINUTES
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES
    quick_timer1: QuickTimer = Field(default_factory=QuickTimer)
    quick_timer2: QuickTimer = Field(default_factory=QuickTimer)
    quick_timer3: QuickTimer = Field(default_factory=QuickTimer)
    auto_rest: bool = False
    default_rest_minutes: int = DEFAULT_REST_MINUTES
    keyboard_shortcuts: bool = False
    status_bar_show_focus: bool = True
    allow_complete_countdown_early: bool = False
    suggest_tasks: list[str] = Field(default_factory=list)
    code_block_chart_show_time: bool = True
    code_block_chart_show_count: bool = True
    default_chart_range: ChartRange = ChartRange.DAYS_14

    @field_validator(
        "auto_continue",
        "auto_rest",
        "keyboard_shortcuts",
        "status_bar_show_focus",
        "allow_complete_countdown_early",
        "code_block_chart_show_time",
        "code_block_chart_show_count",
        mode="before",
    )
    @classmethod
    def _flags(cls, v: Any, info: ValidationInfo) -> bool:
        flag = _flag(v)
        if flag is None:
            return cls.model_fields[info.field_name].default
        return flag

    @field_validator("default_mode", mode="before")
    @classmethod
    def _mode(cls, v: Any) -> TimerMode:
        try:
            return TimerMode(v)
        except ValueError:
            return TimerMode.COUNTDOWN

    @field_validator("adjust_step_minutes", mode="before")
    @classmethod
    def _step(cls, v: Any) -> int:
        n = _number(v)
        if n is None or n < 1 or n > 60:
            return DEFAULT_ADJUST_STEP_MINUTES
        return min(max(math.floor(n), 1), 60)

    @field_validator("default_duration_minutes", mode="before")
    @classmethod
    def _duration(cls, v: Any) -> int:
        n = _number(v)
        if n is None or n <= 0:
            return DEFAULT_DURATION_MINUTES
        return min(max(1, math.floor(n)), MAX_FOCUS_MINUTES)

    @field_validator("default_rest_minutes", mode="before")
    @classmethod
    def _rest(cls, v: Any) -> int:
        n = _number(v)
        if n is None or n <= 0:
            return DEFAULT_REST_MINUTES
        return min(max(1, math.floor(n)), MAX_FOCUS_MINUTES)

    @field_validator("quick_timer1", "quick_timer2", "quick_timer3", mode="before")
    @classmethod
    def _quick_timer(cls, v: Any) -> Any:
        if isinstance(v, (QuickTimer, dict)):
            return v
        return QuickTimer()

    @field_validator("suggest_tasks", mode="before")
    @classmethod
    def _suggestions(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [t for t in v if isinstance(t, str) and t.strip()][:MAX_SUGGEST_TASKS]

    @field_validator("default_chart_range", mode="before")
    @classmethod
    def _chart_range(cls, v: Any) -> ChartRange:
        return ChartRange.from_setting(v)

    def quick_timers(self) -> list[QuickTimer]:
        return [self.quick_timer1, self.quick_timer2, self.quick_timer3]


class RecordFile(_Model):
    state: ActiveState = Field(default_factory=ActiveState)
    sessions: list[Session] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)

    @classmethod
    def default(cls) -> RecordFile:
        return cls()

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def field_name(model_cls: type[BaseModel], key: str) -> str:
    """Resolve a snake_case attribute or camelCase alias to the attribute name."""
    fields = model_cls.model_fields
    if key in fields:
        return key
    for name, info in fields.items():
        if info.alias == key:
            return name
    raise UnknownFieldError(key)


def merge_model(model: M, changes: Mapping[str, Any]) -> M:
    """
    Shallow merge of `changes` into a copy of `model`. Keys must name
    existing fields; the result is validated again so clamping rules apply.
    """
    update = {field_name(type(model), key): value for key, value in changes.items()}
    merged = model.model_dump()
    merged.update(update)
    return type(model).model_validate(merged)
