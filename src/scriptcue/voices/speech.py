"""
speech.py

Speech generation for a processed script.

generate_voice_test() renders a single audition line for the voice picker.
generate_voice_lines() renders every dialogue line of every character the user
is not practising, with that character's assigned voice, stores the audio and
records its URI on the dialogue line.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from tqdm import tqdm

from scriptcue.config import VALID_VOICES
from scriptcue.errors import (
    EmptyInputError,
    ExternalServiceError,
    InvalidVoiceError,
    NoVoiceLinesGeneratedError,
)
from scriptcue.merge.sequencer import DEFAULT_LINES_PER_MINUTE, finalize
from scriptcue.models import ScriptAnalysis, VoiceAssignment, character_key

# (text, voice) -> audio bytes
SpeechSynthesizer = Callable[[str, str], bytes]


@dataclass
class VoiceLineStats:
    total_lines: int = 0
    successful_lines: int = 0
    failed_lines: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLines": self.total_lines,
            "successfulLines": self.successful_lines,
            "failedLines": self.failed_lines,
            "errors": list(self.errors),
        }


def _check_voice(voice: str) -> None:
    if voice not in VALID_VOICES:
        raise InvalidVoiceError(f"Invalid voice option: {voice}. Valid options are: {', '.join(VALID_VOICES)}")


def generate_voice_test(text: str, voice: str, synthesizer: SpeechSynthesizer) -> bytes:
    if not text or not text.strip():
        raise EmptyInputError("voice test text is empty")
    _check_voice(voice)
    return synthesizer(text, voice)


def generate_voice_lines(
    analysis: ScriptAnalysis,
    assignments: Dict[str, VoiceAssignment],
    practice_character: str,
    synthesizer: SpeechSynthesizer,
    store: Any,
    script_id: str,
    *,
    lines_per_minute: int = DEFAULT_LINES_PER_MINUTE,
    show_progress: bool = True,
) -> Tuple[ScriptAnalysis, VoiceLineStats]:
    """
    Synthesize the dialogue of every non-practice character.

    Audio that already exists in the store is reused, not regenerated. A line
    whose synthesis fails with a retryable error (after the synthesizer's own
    retries) is counted as failed and skipped; authentication and quota
    errors abort the run.

    Args:
        analysis: Processed script (left untouched).
        assignments: character name -> VoiceAssignment; characters without an
            assignment are skipped.
        practice_character: The character the user reads; never synthesized.
        synthesizer: Speech-synthesis collaborator.
        store: Object with audio_exists/audio_path/save_audio (JsonScriptStore).
        script_id: Script identifier used for audio paths.

    Returns:
        (new analysis with dialogue voices and processed lines updated, stats)

    Raises:
        NoVoiceLinesGeneratedError: there were lines to voice but none succeeded.
    """
    doc = copy.deepcopy(analysis)
    stats = VoiceLineStats()
    practice_key = character_key(practice_character)
    by_key = {character_key(name): a for name, a in assignments.items()}

    work: List[Tuple[Any, Any, str]] = []
    for c in doc.characters:
        if c.key == practice_key:
            print(f"[info] skipping practice character: {c.name}", flush=True)
            continue
        assignment: Optional[VoiceAssignment] = by_key.get(c.key)
        if assignment is None:
            print(f"[info] skipping character with no voice: {c.name}", flush=True)
            continue
        _check_voice(assignment.voice)
        for d in c.dialogue:
            work.append((c, d, assignment.voice))

    stats.total_lines = len(work)

    for c, d, voice in tqdm(work, desc="voice-lines", disable=not show_progress):
        if store.audio_exists(script_id, c.name, d.line_number, voice):
            d.voices[voice] = store.audio_path(script_id, c.name, d.line_number, voice)
            stats.successful_lines += 1
            continue
        try:
            audio = synthesizer(d.text, voice)
        except ExternalServiceError as exc:
            if not exc.retryable:
                raise
            stats.failed_lines += 1
            stats.errors.append(f"Failed to generate audio for {c.name}, line {d.line_number}: {exc}")
            print(f"[warn] {stats.errors[-1]}", flush=True)
            continue
        d.voices[voice] = store.save_audio(script_id, c.name, d.line_number, voice, audio)
        stats.successful_lines += 1

    if stats.total_lines and not stats.successful_lines:
        raise NoVoiceLinesGeneratedError(
            f"none of {stats.total_lines} voice lines could be generated: {stats.errors[:3]}"
        )

    doc = finalize(doc, lines_per_minute=lines_per_minute, user_character=practice_character)
    print(
        f"[ok] voice lines: {stats.successful_lines}/{stats.total_lines} generated, "
        f"{stats.failed_lines} failed",
        flush=True,
    )
    return doc, stats
