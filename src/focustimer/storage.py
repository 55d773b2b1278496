"""Synchronous JSON file helpers underneath the record store.

Nothing here knows about the record schema: the store validates whatever
`load_json` hands back and decides what "corrupt" costs.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Corrupted:
    reason: str
    text: str = ""
    raw: bytes = b""

    @property
    def content(self) -> str | bytes:
        """What a backup should keep: the raw bytes when they never decoded."""
        return self.raw or self.text


@dataclass(frozen=True)
class LoadResult:
    """
    Outcome of reading a JSON object file:
    - data is None and corrupted is None -> file missing or empty
    - corrupted set -> unreadable / not JSON / not an object
    - otherwise data holds the parsed object
    """

    data: dict[str, Any] | None = None
    corrupted: Corrupted | None = None

    @property
    def missing(self) -> bool:
        return self.data is None and self.corrupted is None


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def load_json(path: Path) -> LoadResult:
    path = Path(path)
    if not path.exists():
        return LoadResult()

    try:
        raw = path.read_bytes()
    except OSError as e:
        return LoadResult(corrupted=Corrupted(reason=f"unreadable: {e}"))

    try:
        txt = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        return LoadResult(corrupted=Corrupted(reason=f"not UTF-8: {e}", raw=raw))

    if not txt.strip():
        return LoadResult()

    try:
        data = json.loads(txt)
    except json.JSONDecodeError as e:
        return LoadResult(corrupted=Corrupted(reason=f"invalid JSON: {e}", text=txt))

    if not isinstance(data, dict):
        return LoadResult(
            corrupted=Corrupted(reason=f"expected an object, got {type(data).__name__}", text=txt)
        )
    return LoadResult(data=data)


def backup_corrupt(path: Path, content: str | bytes) -> Path:
    """Keep what a corrupt file held next to it before it gets overwritten."""
    path = Path(path)
    backup = path.with_name(f"{path.stem}.corrupt-{int(time.time())}.json")
    if isinstance(content, bytes):
        backup.write_bytes(content)
    else:
        backup.write_text(content, encoding="utf-8")
    logger.warning("Backed up corrupt data file %s -> %s", path, backup)
    return backup


def save_json(path: Path, data: Any) -> None:
    """
    Whole-file overwrite:
    - write to temp file in same directory
    - flush + fsync
    - os.replace to target
    - chmod 0600 best-effort
    """
    path = Path(path)
    _ensure_parent(path)

    tmp = path.with_name(path.name + ".tmp")

    payload = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    with open(tmp, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp, path)

    try:
        os.chmod(path, 0o600)
    except OSError:
        pass
