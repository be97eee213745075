import copy
import json

from scriptcue.merge.sequencer import estimated_minutes, finalize
from scriptcue.models import ActionLine, Character, DialogueLine, ScriptAnalysis


def _doc():
    alice = Character(
        name="ALICE",
        first_appearance=1,
        dialogue=[DialogueLine("Hello there.", 2), DialogueLine("She sits.", 6), DialogueLine("Bye.", 9)],
    )
    bob = Character(name="BOB", first_appearance=4, dialogue=[DialogueLine("Hi Alice.", 5, voices={"onyx": "a.mp3"})])
    return ScriptAnalysis(
        characters=[alice, bob],
        action_lines=[ActionLine("She sits.", 6), ActionLine("Rain falls.", 0)],
    )


def test_dialogue_claimed_by_action_is_dropped():
    doc = finalize(_doc())
    alice = doc.character("alice")
    assert [d.line_number for d in alice.dialogue] == [2, 9]
    assert alice.lines == 2

    action_numbers = {a.line_number for a in doc.action_lines}
    for c in doc.characters:
        assert c.lines == len(c.dialogue)
        assert not action_numbers & {d.line_number for d in c.dialogue}


def test_lines_are_interleaved_and_numbered():
    doc = finalize(_doc())
    assert [(p.original_line_number, p.character_id, p.sequential_number) for p in doc.processed_lines] == [
        (0, "ACTION", 1),
        (2, "alice", 2),
        (5, "bob", 3),
        (6, "ACTION", 4),
        (9, "alice", 5),
    ]
    assert doc.processed_lines[0].is_action
    assert doc.processed_lines[2].voices == {"onyx": "a.mp3"}


def test_sequence_numbers_are_written_back():
    doc = finalize(_doc())
    assert [(a.line_number, a.sequential_number) for a in doc.action_lines] == [(6, 4), (0, 1)]
    assert [d.sequential_number for d in doc.character("ALICE").dialogue] == [2, 5]
    assert doc.character("BOB").dialogue[0].sequential_number == 3


def test_sequence_is_contiguous():
    doc = finalize(_doc())
    assert [p.sequential_number for p in doc.processed_lines] == list(range(1, len(doc.processed_lines) + 1))


def test_metadata_is_recomputed():
    doc = finalize(_doc())
    assert doc.metadata.total_lines == 5
    assert doc.metadata.estimated_duration == 1


def test_estimated_minutes_rounds_up():
    assert estimated_minutes(0) == 0
    assert estimated_minutes(60) == 1
    assert estimated_minutes(61) == 2
    assert estimated_minutes(61, lines_per_minute=30) == 3


def test_finalize_is_idempotent():
    once = finalize(_doc())
    twice = finalize(once)
    assert json.dumps(twice.to_dict(), sort_keys=True) == json.dumps(once.to_dict(), sort_keys=True)


def test_finalize_leaves_input_untouched():
    doc = _doc()
    before = copy.deepcopy(doc)
    finalize(doc)
    assert doc == before


def test_user_character_is_flagged():
    doc = finalize(_doc(), user_character="Bob")
    assert [p.is_user for p in doc.processed_lines] == [False, False, True, False, False]
