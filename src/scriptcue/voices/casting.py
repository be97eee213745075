"""
casting.py

Document-level character validation and voice assignment.

Both passes run once over the fully merged character list, never per chunk.

validate_characters()
    The line classifier treats any all-caps line as a character cue, so
    transitions ("FADE OUT"), sound cues and the like slip through. A boolean
    classifier confirms which names are real speaking characters; the rest are
    removed together with their lines.

assign_voices()
    A predictor puts every character into one of two categories (presumed
    gender), each with its own voice pool. Within a pool, characters are
    ranked by dialogue volume and voices are dealt round-robin, so a voice is
    only reused when the pool runs out and the busiest speakers get the least
    shared voices. Same inputs -> same assignment.
"""
from __future__ import annotations

import copy
from typing import Callable, Dict, List, Mapping, Sequence, Tuple

from scriptcue.errors import ClassificationFormatError, NoCharactersDetectedError
from scriptcue.models import Character, ScriptAnalysis, VoiceAssignment

CharacterValidator = Callable[[List[Dict[str, str]]], Dict[str, bool]]
VoiceCategoryPredictor = Callable[[List[Dict[str, str]]], Dict[str, str]]

DEFAULT_TEST_TEXT = "Hello, my name is {name}. Let's run the scene."


def character_payload(characters: Sequence[Character]) -> List[Dict[str, str]]:
    return [
        {"name": c.name, "firstLine": c.dialogue[0].text if c.dialogue else ""}
        for c in characters
    ]


def _require_mapping(response: object, what: str) -> Mapping:
    if not isinstance(response, Mapping):
        raise ClassificationFormatError(f"{what} returned {type(response).__name__}, expected a mapping")
    if not response:
        raise ClassificationFormatError(f"{what} returned an empty response")
    return response


def validate_characters(document: ScriptAnalysis, validator: CharacterValidator) -> ScriptAnalysis:
    """
    Remove characters the validator does not confirm.

    Returns:
        A new ScriptAnalysis holding only confirmed characters; the removed
        characters' lines are subtracted from metadata.total_lines.

    Raises:
        NoCharactersDetectedError: nothing was detected, or nothing survived.
        ClassificationFormatError: the validator response is malformed or empty.
    """
    if not document.characters:
        raise NoCharactersDetectedError("no character cues were detected in the script")

    verdicts = _require_mapping(validator(character_payload(document.characters)), "character validator")

    doc = copy.deepcopy(document)
    kept: List[Character] = []
    removed: List[Character] = []
    for c in doc.characters:
        (kept if verdicts.get(c.name) else removed).append(c)

    if removed:
        names = ", ".join(c.name for c in removed)
        print(f"[info] dropped {len(removed)} non-speaking cue(s): {names}", flush=True)

    doc.characters = kept
    doc.metadata.total_lines = max(doc.metadata.total_lines - sum(c.lines for c in removed), 0)

    if not kept:
        raise NoCharactersDetectedError("no detected character was confirmed as a speaking character")
    return doc


def _rank_key(c: Character) -> Tuple[int, int, str]:
    return (-c.lines, c.first_appearance, c.key)


def assign_voices(
    characters: Sequence[Character],
    predictor: VoiceCategoryPredictor,
    voice_pools: Mapping[str, Sequence[str]],
) -> Dict[str, VoiceAssignment]:
    """
    Assign a voice to every character.

    Args:
        characters: Validated characters.
        predictor: Attribute-prediction collaborator, name -> category.
        voice_pools: category -> ordered voices for that category.

    Returns:
        {character name: VoiceAssignment}, in the order of `characters`.

    Raises:
        ClassificationFormatError: the prediction is empty, misses a
            character, or names a category without a pool.
    """
    if not characters:
        return {}

    predicted = _require_mapping(predictor(character_payload(characters)), "voice category predictor")
    for c in characters:
        category = predicted.get(c.name)
        if category not in voice_pools:
            raise ClassificationFormatError(
                f"voice category predictor gave {category!r} for {c.name!r}; "
                f"expected one of {sorted(voice_pools)}"
            )

    assigned: Dict[str, VoiceAssignment] = {}
    for category, pool in voice_pools.items():
        members = sorted((c for c in characters if predicted[c.name] == category), key=_rank_key)
        for i, c in enumerate(members):
            test_text = c.dialogue[0].text if c.dialogue else DEFAULT_TEST_TEXT.format(name=c.name)
            assigned[c.name] = VoiceAssignment(
                character=c.name,
                voice=pool[i % len(pool)],
                category=category,
                test_text=test_text,
            )

    return {c.name: assigned[c.name] for c in characters}
