from __future__ import annotations

import os
from pathlib import Path

DATA_ENV = "FOCUSTIMER_DATA"


def default_data_path(profile: str | None = None) -> Path:
    base = Path.home() / ".config" / "focustimer"
    name = f"{profile}.json" if profile else "data.json"
    return base / name


def resolve_data_path(data_arg: str | None, profile: str | None) -> Path:
    """--data wins, then $FOCUSTIMER_DATA, then the per-profile default."""
    if data_arg:
        return Path(data_arg).expanduser().resolve()
    env = os.environ.get(DATA_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return default_data_path(profile).expanduser().resolve()
