"""
line_classifier.py

Heuristic state machine that turns one chunk of screenplay text into scenes and
per-character dialogue.

Purpose in the pipeline
-----------------------
Screenplay formatting conventions carry most of the structure:

    INT. KITCHEN - DAY          <- scene heading
    ALICE                       <- character cue (all caps)
    Hello there.                <- dialogue, until a blank line
    How are you?

    She pours the tea.          <- action (flagged by the action classifier)

Each trimmed line is classified in priority order:

1) line flagged as action      -> end any open speech, clear the speaker
2) scene heading               -> end speech, close the open scene, open a new one
3) character cue               -> end the previous speaker's speech, new speaker
4) non-blank line with speaker -> append to the speech buffer
5) blank line ending a speech  -> emit the buffered speech, clear the speaker

The parse state is an immutable ParseState; step() is a pure transition that
returns the next state plus whatever it emitted (a finished speech or a closed
scene). classify_chunk() folds step() over a chunk.

A chunk boundary can fall in the middle of a speech. finish() returns a
CarryOver so the next chunk starts with the same speaker; the two fragments are
combined later by the merger.

This module is deterministic and contains no LLM logic.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import AbstractSet, Dict, List, Optional, Tuple, Union

from scriptcue.models import Character, Chunk, DialogueLine, RawLine, Scene, character_key

SCENE_PREFIXES = ("INT.", "EXT.")
TIME_OF_DAY_RE = re.compile(r"DAY|NIGHT|EVENING|MORNING", re.IGNORECASE)


@dataclass(frozen=True)
class OpenScene:
    name: str
    start_line: int
    location: Optional[str] = None
    time_of_day: Optional[str] = None

    def close(self, end_line: int) -> Scene:
        return Scene(
            name=self.name,
            start_line=self.start_line,
            end_line=max(end_line, self.start_line),
            location=self.location,
            time_of_day=self.time_of_day,
        )


@dataclass(frozen=True)
class CarryOver:
    """Speaker still talking when a chunk ended."""
    speaker: str
    speaker_line: Optional[int] = None
    mid_speech: bool = False


@dataclass(frozen=True)
class ParseState:
    """
    scene: scene opened by the last heading, not yet closed
    speaker: current speaker as written on the cue line
    speaker_line: line of the cue, possibly in an earlier chunk
    buffer / buffer_start: fragments of the speech being collected
    resumed: speaker carried over mid-speech and nothing collected yet
    """
    scene: Optional[OpenScene] = None
    speaker: Optional[str] = None
    speaker_line: Optional[int] = None
    buffer: Tuple[str, ...] = ()
    buffer_start: Optional[int] = None
    resumed: bool = False

    @classmethod
    def resume(cls, carry: Optional[CarryOver]) -> "ParseState":
        if carry is None:
            return cls()
        return cls(speaker=carry.speaker, speaker_line=carry.speaker_line, resumed=carry.mid_speech)


@dataclass(frozen=True)
class SpeechEmitted:
    speaker: str
    first_seen: int
    line: DialogueLine


@dataclass(frozen=True)
class SceneClosed:
    scene: Scene


Emission = Union[SpeechEmitted, SceneClosed]


@dataclass
class ClassifiedChunk:
    characters: List[Character] = field(default_factory=list)
    scenes: List[Scene] = field(default_factory=list)
    carry: Optional[CarryOver] = None


def is_scene_heading(line: str) -> bool:
    return line.startswith(SCENE_PREFIXES) and TIME_OF_DAY_RE.search(line) is not None


def is_character_cue(line: str) -> bool:
    return (
        len(line) >= 2
        and line.upper() == line
        and not line.startswith("(")
        and not line.endswith(")")
    )


def parse_scene_heading(line: str, line_number: int) -> OpenScene:
    """
    Split "INT. KITCHEN - DAY" into name "KITCHEN", location "INT. KITCHEN "
    and time of day "DAY". Location and time are only set when the heading
    contains a dash.
    """
    body = line
    for prefix in SCENE_PREFIXES:
        if body.startswith(prefix):
            body = body[len(prefix):]
            break

    if "-" not in line:
        return OpenScene(name=body.strip(), start_line=line_number)

    location = line.split("-", 1)[0]
    tail = line.rsplit("-", 1)[1]
    m = TIME_OF_DAY_RE.search(tail) or TIME_OF_DAY_RE.search(line)
    return OpenScene(
        name=body.rsplit("-", 1)[0].strip(),
        start_line=line_number,
        location=location,
        time_of_day=m.group(0) if m else None,
    )


def _flush(state: ParseState) -> Tuple[ParseState, List[Emission]]:
    """Emit the buffered speech, if any, and empty the buffer."""
    if not state.buffer or state.speaker is None or state.buffer_start is None:
        return replace(state, buffer=(), buffer_start=None), []
    line = DialogueLine(
        text=" ".join(state.buffer),
        line_number=state.buffer_start,
        multi_line=len(state.buffer) > 1,
    )
    first_seen = state.speaker_line if state.speaker_line is not None else state.buffer_start
    out = SpeechEmitted(speaker=state.speaker, first_seen=first_seen, line=line)
    return replace(state, buffer=(), buffer_start=None), [out]


def _drop_speaker(state: ParseState) -> ParseState:
    return replace(state, speaker=None, speaker_line=None, resumed=False)


def step(state: ParseState, raw: RawLine, is_action: bool = False) -> Tuple[ParseState, List[Emission]]:
    """Advance the state machine by one line."""
    line = raw.content.strip()
    n = raw.line_number

    if is_action:
        state, out = _flush(state)
        return _drop_speaker(state), out

    if is_scene_heading(line):
        state, out = _flush(state)
        if state.scene is not None:
            out.append(SceneClosed(state.scene.close(n - 1)))
        state = _drop_speaker(replace(state, scene=parse_scene_heading(line, n)))
        return state, out

    if is_character_cue(line):
        state, out = _flush(state)
        return replace(state, speaker=line, speaker_line=n, resumed=False), out

    if line and state.speaker is not None:
        start = state.buffer_start if state.buffer else n
        return replace(state, buffer=state.buffer + (line,), buffer_start=start, resumed=False), []

    if not line and state.speaker is not None and (state.buffer or state.resumed):
        state, out = _flush(state)
        return _drop_speaker(state), out

    return state, []


def finish(state: ParseState, last_line: int) -> Tuple[Optional[CarryOver], List[Emission]]:
    """
    End of chunk: emit any open speech, close any open scene at last_line and
    report the speaker the next chunk should resume with.
    """
    carry = None
    if state.speaker is not None:
        carry = CarryOver(
            speaker=state.speaker,
            speaker_line=state.speaker_line,
            mid_speech=bool(state.buffer) or state.resumed,
        )
    state, out = _flush(state)
    if state.scene is not None:
        out.append(SceneClosed(state.scene.close(last_line)))
    return carry, out


def classify_chunk(
    chunk: Chunk,
    action_line_numbers: AbstractSet[int] = frozenset(),
    carry: Optional[CarryOver] = None,
) -> ClassifiedChunk:
    """
    Run the state machine over every line of a chunk.

    Args:
        chunk: The chunk to classify.
        action_line_numbers: Absolute line numbers the action classifier
            flagged; those lines are never read as cues or dialogue.
        carry: Speaker left open by the previous chunk, if any.

    Returns:
        ClassifiedChunk with characters in order of first appearance, scenes
        in order of start line, and the carry-over for the next chunk.
    """
    state = ParseState.resume(carry)
    characters: Dict[str, Character] = {}
    scenes: List[Scene] = []

    def collect(emitted: List[Emission]) -> None:
        for e in emitted:
            if isinstance(e, SceneClosed):
                scenes.append(e.scene)
                continue
            key = character_key(e.speaker)
            ch = characters.get(key)
            if ch is None:
                ch = Character(name=e.speaker, first_appearance=e.first_seen)
                characters[key] = ch
            ch.first_appearance = min(ch.first_appearance, e.first_seen)
            ch.dialogue.append(e.line)
            ch.recount()

    for raw in chunk.raw_lines():
        state, emitted = step(state, raw, raw.line_number in action_line_numbers)
        collect(emitted)

    next_carry, emitted = finish(state, chunk.end_line)
    collect(emitted)

    return ClassifiedChunk(characters=list(characters.values()), scenes=scenes, carry=next_carry)
