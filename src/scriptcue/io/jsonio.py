"""
jsonio.py

Atomic file writes for everything scriptcue persists (status records,
analysis snapshots, voice assignments, audio, cached responses).

A write goes to "<path>.tmp" and is renamed into place, so a reader never
sees a half-written file.
"""
from __future__ import annotations

import json
import os
from typing import Any, Optional


def _replace_into(path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "wb") as f:
        f.write(data)
    os.replace(tmp, path)


def write_json_atomic(path: str, obj: Any) -> None:
    _replace_into(path, json.dumps(obj, indent=2, ensure_ascii=False).encode("utf-8"))


def write_bytes_atomic(path: str, data: bytes) -> None:
    _replace_into(path, data)


def read_json(path: str, default: Optional[Any] = None) -> Any:
    """Return the decoded document, or default when the file does not exist."""
    if not os.path.exists(path):
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
