"""
cache.py

On-disk cache for collaborator responses.

Each call is keyed by a SHA-1 of its JSON payload (model, task, input), so
re-processing the same screenplay never pays twice for the same request and
re-runs are reproducible. A cache rooted at None is disabled.

Callers save a response only after it has been validated; a rejected answer
is never replayed.
"""
from __future__ import annotations

import hashlib
import json
import os
from typing import Any, Dict, Optional

from scriptcue.io.jsonio import read_json, write_json_atomic


def _sha1(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


class ResponseCache:
    def __init__(self, cache_root: Optional[str], task: str):
        self.cache_root = cache_root
        self.task = task

    @property
    def enabled(self) -> bool:
        return self.cache_root is not None

    def key(self, payload: Dict[str, Any]) -> str:
        return _sha1(json.dumps({"task": self.task, **payload}, sort_keys=True))

    def _path(self, key: str) -> Optional[str]:
        if self.cache_root is None:
            return None
        return os.path.join(self.cache_root, self.task, f"{key}.json")

    def load(self, key: str) -> Optional[Any]:
        """Return the cached response, or None when absent or disabled."""
        path = self._path(key)
        if path is None:
            return None
        entry = read_json(path)
        return entry["response"] if entry is not None else None

    def save(self, key: str, response: Any) -> None:
        path = self._path(key)
        if path is None:
            return
        write_json_atomic(path, {"response": response})
