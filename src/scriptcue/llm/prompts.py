"""
prompts.py

Prompt text and JSON schemas for the three classification tasks the pipeline
delegates to an LLM:

1) Action lines: which numbered lines of a chunk are stage directions.
2) Character validation: which detected cue names are real speaking characters.
3) Voice category: the presumed gender of each character, used to pick a voice pool.

This module is the semantic contract between the deterministic parser and the
LLM. It only builds strings and schemas; the calls live in collaborators.py.
"""
from __future__ import annotations

import json
from typing import Dict, List, Sequence

ACTION_LINE_INSTRUCTIONS = (
    "You are a screenplay annotator. Below is a fragment of a screenplay. Each line "
    "is prefixed with its absolute line number and a colon.\n\n"
    "Return ONLY the lines that are action / stage directions: descriptions of what "
    "is seen or heard on screen. Do NOT return:\n"
    "- scene headings (INT. / EXT. lines)\n"
    "- character names introducing dialogue\n"
    "- dialogue or parentheticals\n"
    "- transitions such as CUT TO: or FADE OUT.\n\n"
    "Use the line numbers exactly as given. Respond with a JSON array and nothing "
    "else, one object per action line:\n"
    '[{"text": "<line text>", "lineNumber": <int>}, ...]\n'
    "Respond with [] if the fragment has no action lines."
)


def number_lines(chunk_text: str, start_line: int) -> str:
    """Render a chunk as "{absoluteLineNumber}: {content}" lines."""
    return "\n".join(
        f"{start_line + i}: {content}" for i, content in enumerate(chunk_text.split("\n"))
    )


def build_action_line_prompt(numbered_lines: str, instructions: str = ACTION_LINE_INSTRUCTIONS) -> str:
    return (
        f"{instructions}\n\n"
        "----- SCREENPLAY START -----\n"
        f"{numbered_lines}\n"
        "----- SCREENPLAY END -----\n"
    )


def build_character_validation_prompt(characters: Sequence[Dict[str, str]]) -> str:
    """
    Ask whether each candidate is a speaking character.

    Args:
        characters: [{"name": ..., "firstLine": ...}] as detected by the parser.
    """
    return (
        "You are a screenplay annotator. A parser detected the following names as "
        "character cues, each with the first line of dialogue attributed to it.\n"
        "Some of them are false positives: transitions (FADE OUT, CUT TO), scene "
        "headings, sound cues, or other all-caps stage directions.\n\n"
        "For each name, decide whether it is a real SPEAKING character.\n\n"
        "Return a JSON object {\"characters\": [{\"name\": <str>, \"is_character\": <bool>}, ...]} "
        "with exactly one entry per input name, using the names exactly as given.\n\n"
        f"Candidates:\n{json.dumps(list(characters), indent=2)}\n"
    )


def character_validation_schema() -> Dict:
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "characters": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "is_character": {"type": "boolean"},
                    },
                    "required": ["name", "is_character"],
                },
            },
        },
        "required": ["characters"],
    }


def build_voice_category_prompt(characters: Sequence[Dict[str, str]], categories: List[str]) -> str:
    return (
        "You are casting voices for a table read of a screenplay. For each character "
        "below (name plus first line of dialogue), predict the most likely gender "
        f"of the character, as one of: {', '.join(categories)}.\n\n"
        "Return a JSON object {\"characters\": [{\"name\": <str>, \"category\": <str>}, ...]} "
        "with exactly one entry per input name, using the names exactly as given.\n\n"
        f"Characters:\n{json.dumps(list(characters), indent=2)}\n"
    )


def voice_category_schema(categories: List[str]) -> Dict:
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "characters": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "category": {"type": "string", "enum": list(categories)},
                    },
                    "required": ["name", "category"],
                },
            },
        },
        "required": ["characters"],
    }
