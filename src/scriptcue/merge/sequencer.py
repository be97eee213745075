"""
sequencer.py

Final pass over a merged, validated ScriptAnalysis:

1) drop dialogue that sits on a line the action classifier claimed
2) interleave action lines and dialogue by original line number
3) number the result 1..N and write the numbers back onto
   characters[].dialogue and action_lines
4) recompute metadata (total lines, estimated minutes)

finalize() returns a new analysis and is idempotent: finalize(finalize(x))
equals finalize(x).
"""
from __future__ import annotations

import copy
import math
from typing import List, Optional

from scriptcue.models import (
    ACTION_CHARACTER_ID,
    ProcessedLine,
    ScriptAnalysis,
    character_key,
)

DEFAULT_LINES_PER_MINUTE = 60


def estimated_minutes(total_lines: int, lines_per_minute: int = DEFAULT_LINES_PER_MINUTE) -> int:
    return math.ceil(total_lines / lines_per_minute)


def drop_action_duplicates(document: ScriptAnalysis) -> ScriptAnalysis:
    """Action classification wins when both classifiers claim the same line."""
    action_numbers = {a.line_number for a in document.action_lines}
    for c in document.characters:
        c.dialogue = [d for d in c.dialogue if d.line_number not in action_numbers]
        c.recount()
    return document


def finalize(
    document: ScriptAnalysis,
    *,
    lines_per_minute: int = DEFAULT_LINES_PER_MINUTE,
    user_character: Optional[str] = None,
) -> ScriptAnalysis:
    """
    Deduplicate, interleave and sequence all lines of the document.

    Args:
        document: Merged analysis (left untouched).
        lines_per_minute: Reading pace for metadata.estimated_duration.
        user_character: If given, that character's lines are flagged is_user.

    Returns:
        A new ScriptAnalysis with processed_lines filled in.
    """
    doc = drop_action_duplicates(copy.deepcopy(document))
    user_key = character_key(user_character) if user_character else None

    entries: List[tuple] = []
    for a in doc.action_lines:
        line = ProcessedLine(
            character_id=ACTION_CHARACTER_ID,
            character_name=ACTION_CHARACTER_ID,
            text=a.text,
            original_line_number=a.line_number,
            sequential_number=0,
            is_action=True,
        )
        entries.append((line, a))
    for c in doc.characters:
        for d in c.dialogue:
            line = ProcessedLine(
                character_id=c.key,
                character_name=c.name,
                text=d.text,
                original_line_number=d.line_number,
                sequential_number=0,
                is_user=c.key == user_key,
                voices=dict(d.voices),
            )
            entries.append((line, d))

    entries.sort(key=lambda e: e[0].original_line_number)

    processed: List[ProcessedLine] = []
    for seq, (line, source) in enumerate(entries, start=1):
        line.sequential_number = seq
        source.sequential_number = seq
        processed.append(line)

    doc.processed_lines = processed
    doc.metadata.total_lines = len(processed)
    doc.metadata.estimated_duration = estimated_minutes(len(processed), lines_per_minute)
    return doc
