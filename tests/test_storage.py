"""Tests for storage.load_json, storage.save_json and storage.backup_corrupt."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from focustimer.storage import backup_corrupt, load_json, save_json


@pytest.fixture()
def tmp_json(tmp_path: Path) -> Path:
    return tmp_path / "data.json"


# ---- save_json ----


def test_save_creates_file(tmp_json):
    save_json(tmp_json, {"key": "value"})
    assert tmp_json.exists()


def test_save_writes_valid_json(tmp_json):
    save_json(tmp_json, {"a": 1, "b": [1, 2, 3]})
    data = json.loads(tmp_json.read_text())
    assert data == {"a": 1, "b": [1, 2, 3]}


def test_save_creates_parent_dirs(tmp_path):
    deep = tmp_path / "a" / "b" / "c" / "data.json"
    save_json(deep, {"x": 1})
    assert deep.exists()


def test_save_leaves_no_tmp_file(tmp_json):
    save_json(tmp_json, {"x": 1})
    tmp = tmp_json.with_name(tmp_json.name + ".tmp")
    assert not tmp.exists()


def test_save_sets_permissions(tmp_json):
    save_json(tmp_json, {})
    mode = oct(os.stat(tmp_json).st_mode & 0o777)
    assert mode == "0o600"


def test_save_overwrites_whole_file(tmp_json):
    save_json(tmp_json, {"a": 1, "b": 2})
    save_json(tmp_json, {"c": 3})
    assert json.loads(tmp_json.read_text()) == {"c": 3}


# ---- load_json ----


def test_load_missing_is_missing(tmp_json):
    result = load_json(tmp_json)
    assert result.missing
    assert result.data is None


def test_load_missing_does_not_create_file(tmp_json):
    load_json(tmp_json)
    assert not tmp_json.exists()


def test_load_empty_file_is_missing(tmp_json):
    tmp_json.write_text("  \n", encoding="utf-8")
    assert load_json(tmp_json).missing


def test_load_valid_json(tmp_json):
    save_json(tmp_json, {"state": {}, "sessions": []})
    result = load_json(tmp_json)
    assert result.data == {"state": {}, "sessions": []}
    assert result.corrupted is None


def test_load_corrupt_reports_text(tmp_json):
    tmp_json.write_text("not valid json {{{{", encoding="utf-8")
    result = load_json(tmp_json)
    assert result.data is None
    assert result.corrupted is not None
    assert result.corrupted.text == "not valid json {{{{"
    assert not result.missing


def test_load_non_object_is_corrupt(tmp_json):
    tmp_json.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    result = load_json(tmp_json)
    assert result.corrupted is not None
    assert "list" in result.corrupted.reason


def test_load_undecodable_bytes_is_corrupt(tmp_json):
    tmp_json.write_bytes(b"\xff\xfe\x00garbage")
    result = load_json(tmp_json)
    assert result.corrupted is not None
    assert result.corrupted.content == b"\xff\xfe\x00garbage"


# ---- backup_corrupt ----


def test_backup_corrupt_writes_sibling(tmp_json):
    backup = backup_corrupt(tmp_json, "broken")
    assert backup.parent == tmp_json.parent
    assert backup.read_text(encoding="utf-8") == "broken"
    assert ".corrupt-" in backup.name


def test_backup_corrupt_keeps_raw_bytes(tmp_json):
    backup = backup_corrupt(tmp_json, b'{"sessions": [\xff\xfe')
    assert backup.read_bytes() == b'{"sessions": [\xff\xfe'


# ---- round-trip ----


def test_roundtrip(tmp_json):
    original = {"sessions": [{"id": "2026-01-01T09:00:00+00:00", "actualSec": 1500, "note": "写作"}]}
    save_json(tmp_json, original)
    assert load_json(tmp_json).data == original
