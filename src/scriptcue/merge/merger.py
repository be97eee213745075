"""
merger.py

Fold per-chunk results into the document-level ScriptAnalysis.

merge_chunk() never mutates its inputs: it returns a new ScriptAnalysis, so
the pipeline threads a single accumulator through the ordered chunk list and a
failed merge leaves the previous accumulator intact.

Three independent merges:

- characters: keyed by lowercased name; dialogue lists are concatenated and
  sorted by line number, first_appearance is the minimum seen.
- scenes: concatenated, then stably sorted by start line.
- action lines: concatenated; a line number may appear only once.

Chunks must be merged in ascending start-line order.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Dict, List

from scriptcue.errors import (
    DuplicateActionLineError,
    NonSequentialActionLineError,
    NonSequentialDialogueError,
)
from scriptcue.models import (
    ActionLine,
    Character,
    ChunkResult,
    DialogueLine,
    Scene,
    ScriptAnalysis,
)


def _copy_character(c: Character) -> Character:
    return Character(
        name=c.name,
        first_appearance=c.first_appearance,
        dialogue=[replace(d, voices=dict(d.voices)) for d in c.dialogue],
    )


def merge_dialogue(name: str, existing: List[DialogueLine], incoming: List[DialogueLine]) -> List[DialogueLine]:
    """
    Combine two dialogue lists into one ordered by line number.

    Two speeches at the same line are the same speech seen twice; that is only
    tolerated for multi-line speeches (which a chunk boundary can cut), and
    then the first one is kept.
    """
    combined = sorted(list(existing) + list(incoming), key=lambda d: d.line_number)
    out: List[DialogueLine] = []
    for d in combined:
        if out and out[-1].line_number == d.line_number:
            prev = out[-1]
            if not (prev.multi_line or d.multi_line):
                raise NonSequentialDialogueError(
                    f"character {name!r} has two speeches at line {d.line_number}"
                )
            continue
        out.append(d)
    return out


def merge_characters(existing: List[Character], incoming: List[Character]) -> List[Character]:
    merged: Dict[str, Character] = {c.key: _copy_character(c) for c in existing}
    for c in incoming:
        cur = merged.get(c.key)
        if cur is None:
            merged[c.key] = _copy_character(c)
            continue
        cur.dialogue = merge_dialogue(cur.name, cur.dialogue, _copy_character(c).dialogue)
        cur.first_appearance = min(cur.first_appearance, c.first_appearance)
        cur.recount()
    return list(merged.values())


def merge_scenes(existing: List[Scene], incoming: List[Scene]) -> List[Scene]:
    return sorted([replace(s) for s in list(existing) + list(incoming)], key=lambda s: s.start_line)


def merge_action_lines(existing: List[ActionLine], incoming: List[ActionLine]) -> List[ActionLine]:
    combined = [replace(a) for a in list(existing) + list(incoming)]

    counts = Counter(a.line_number for a in combined)
    dupes = sorted(n for n, k in counts.items() if k > 1)
    if dupes:
        raise DuplicateActionLineError(f"action lines listed more than once: {dupes}")

    combined.sort(key=lambda a: a.line_number)
    for a, b in zip(combined, combined[1:]):
        if a.line_number >= b.line_number:
            raise NonSequentialActionLineError(
                f"action lines out of order at lines {a.line_number}, {b.line_number}"
            )
    return combined


def merge_chunk(document: ScriptAnalysis, chunk: ChunkResult) -> ScriptAnalysis:
    """
    Merge one chunk's result into the document.

    Args:
        document: Accumulated analysis of all previous chunks.
        chunk: Result of classifying the next chunk.

    Returns:
        A new ScriptAnalysis; document is left untouched.

    Raises:
        MergeInvariantError: the merged structure would violate ordering or
            uniqueness of line numbers.
    """
    characters = merge_characters(document.characters, chunk.characters)
    scenes = merge_scenes(document.scenes, chunk.scenes)
    action_lines = merge_action_lines(document.action_lines, chunk.action_lines)

    metadata = replace(
        document.metadata,
        total_lines=sum(c.lines for c in characters) + len(action_lines),
        chunk_errors=list(document.metadata.chunk_errors),
    )
    return ScriptAnalysis(
        characters=characters,
        scenes=scenes,
        action_lines=action_lines,
        processed_lines=[],
        metadata=metadata,
    )
