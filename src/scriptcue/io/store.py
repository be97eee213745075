"""
store.py

File-backed persistence for processed scripts.

Layout, one directory per script id:

    <root>/<script_id>/status.json      processing status record
    <root>/<script_id>/analysis.json    ScriptAnalysis snapshot
    <root>/<script_id>/voices.json      character name -> voice assignment
    <root>/<script_id>/audio/<character>/<voice>/<file>.mp3

Every JSON document is written to a temp file and renamed into place, so a
reader polling for progress never sees a half-written file.

The status record doubles as the job guard: a new run may only start when the
script has no status yet, or its last run completed or failed.
"""
from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from scriptcue.errors import InvalidStatusTransitionError
from scriptcue.io.jsonio import read_json, write_bytes_atomic, write_json_atomic
from scriptcue.models import ScriptAnalysis, VoiceAssignment

INITIALIZING = "initializing"
PROCESSING = "processing"
VALIDATING = "validating"
COMPLETED = "completed"
ERROR = "error"

ALLOWED_TRANSITIONS = {
    None: {INITIALIZING},
    COMPLETED: {INITIALIZING},
    ERROR: {INITIALIZING},
    INITIALIZING: {PROCESSING, ERROR},
    PROCESSING: {PROCESSING, VALIDATING, ERROR},
    VALIDATING: {VALIDATING, COMPLETED, ERROR},
}


def _path_component(s: str) -> str:
    return re.sub(r"[^\w.-]+", "_", s.strip()) or "_"


class JsonScriptStore:
    def __init__(self, root: str):
        self.root = root

    def _dir(self, script_id: str) -> str:
        return os.path.join(self.root, _path_component(script_id))

    def _file(self, script_id: str, name: str) -> str:
        return os.path.join(self._dir(script_id), name)

    # --- status ----------------------------------------------------------

    def load_status(self, script_id: str) -> Optional[Dict[str, Any]]:
        return read_json(self._file(script_id, "status.json"))

    def set_status(
        self,
        script_id: str,
        status: str,
        *,
        progress: int,
        phase: str = "",
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Write the status record, refusing transitions the job lifecycle
        does not allow (e.g. starting a second run while one is processing).
        """
        current = self.load_status(script_id)
        current_status = current["status"] if current else None
        if status not in ALLOWED_TRANSITIONS.get(current_status, set()):
            raise InvalidStatusTransitionError(
                f"script {script_id!r}: cannot go from {current_status!r} to {status!r}"
            )
        record = {
            "status": status,
            "progress": progress,
            "phase": phase,
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        write_json_atomic(self._file(script_id, "status.json"), record)
        return record

    # --- analysis --------------------------------------------------------

    def save_analysis(self, script_id: str, analysis: ScriptAnalysis) -> None:
        write_json_atomic(self._file(script_id, "analysis.json"), analysis.to_dict())

    def load_analysis(self, script_id: str) -> Optional[ScriptAnalysis]:
        obj = read_json(self._file(script_id, "analysis.json"))
        return ScriptAnalysis.from_dict(obj) if obj is not None else None

    # --- voices ----------------------------------------------------------

    def save_voice_assignments(self, script_id: str, assignments: Dict[str, VoiceAssignment]) -> None:
        obj = {name: a.to_dict() for name, a in assignments.items()}
        write_json_atomic(self._file(script_id, "voices.json"), obj)

    def load_voice_assignments(self, script_id: str) -> Dict[str, VoiceAssignment]:
        obj = read_json(self._file(script_id, "voices.json"), default={})
        return {name: VoiceAssignment.from_dict(name, d) for name, d in obj.items()}

    # --- audio -----------------------------------------------------------

    def audio_path(self, script_id: str, character: str, line_number: int, voice: str) -> str:
        ch = _path_component(character)
        sid = _path_component(script_id)
        return os.path.join(
            self._dir(script_id), "audio", ch, voice, f"{sid}_{ch}_{line_number}_{voice}.mp3"
        )

    def audio_exists(self, script_id: str, character: str, line_number: int, voice: str) -> bool:
        return os.path.exists(self.audio_path(script_id, character, line_number, voice))

    def save_audio(self, script_id: str, character: str, line_number: int, voice: str, audio: bytes) -> str:
        """Store audio and return its URI."""
        path = self.audio_path(script_id, character, line_number, voice)
        write_bytes_atomic(path, audio)
        return path
