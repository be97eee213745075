from scriptcue.models import Chunk, RawLine
from scriptcue.text.line_classifier import (
    CarryOver,
    ParseState,
    SceneClosed,
    SpeechEmitted,
    classify_chunk,
    is_character_cue,
    is_scene_heading,
    parse_scene_heading,
    step,
)


def _chunk(lines, start=0):
    return Chunk("\n".join(lines), start)


def _dialogue(classified):
    return {
        c.name: [(d.line_number, d.text) for d in c.dialogue]
        for c in classified.characters
    }


def test_kitchen_scene():
    text = "INT. KITCHEN - DAY\nALICE\nHello there.\n\nBOB\nHi Alice."
    out = classify_chunk(Chunk(text, 0))

    assert len(out.scenes) == 1
    scene = out.scenes[0]
    assert scene.name == "KITCHEN"
    assert scene.location == "INT. KITCHEN "
    assert scene.time_of_day == "DAY"
    assert (scene.start_line, scene.end_line) == (0, 5)

    assert _dialogue(out) == {"ALICE": [(2, "Hello there.")], "BOB": [(5, "Hi Alice.")]}
    assert [c.lines for c in out.characters] == [1, 1]
    assert [c.first_appearance for c in out.characters] == [1, 4]


def test_scene_heading_rules():
    assert is_scene_heading("INT. KITCHEN - DAY")
    assert is_scene_heading("EXT. PARK - evening")
    assert not is_scene_heading("int. kitchen - day")
    assert not is_scene_heading("INT. KITCHEN")
    assert not is_scene_heading("THE DAY AFTER")


def test_character_cue_rules():
    assert is_character_cue("ALICE")
    assert is_character_cue("DR. WHO")
    assert not is_character_cue("A")
    assert not is_character_cue("")
    assert not is_character_cue("Alice")
    assert not is_character_cue("(BEAT)")
    assert not is_character_cue("ALICE (V.O.)")


def test_heading_without_dash_has_no_location():
    scene = parse_scene_heading("INT. HALLWAY NIGHT", 7)
    assert scene.name == "HALLWAY NIGHT"
    assert scene.location is None
    assert scene.time_of_day is None
    assert scene.start_line == 7


def test_lowercase_time_token_is_kept_as_written():
    scene = parse_scene_heading("EXT. PARK - evening", 0)
    assert scene.name == "PARK"
    assert scene.location == "EXT. PARK "
    assert scene.time_of_day == "evening"


def test_new_heading_closes_previous_scene():
    out = classify_chunk(_chunk(["INT. A - DAY", "x", "EXT. B - NIGHT", "y"]))
    assert [(s.name, s.start_line, s.end_line) for s in out.scenes] == [("A", 0, 1), ("B", 2, 3)]


def test_open_scene_closes_at_chunk_end():
    out = classify_chunk(_chunk(["EXT. B - NIGHT", "y", ""], start=10))
    assert [(s.start_line, s.end_line) for s in out.scenes] == [(10, 12)]


def test_multiline_speech_is_joined():
    out = classify_chunk(_chunk(["ALICE", "Hello there.", "How are you?", ""]))
    (alice,) = out.characters
    assert [(d.line_number, d.text, d.multi_line) for d in alice.dialogue] == [
        (1, "Hello there. How are you?", True)
    ]


def test_cue_ends_previous_speech_without_blank_line():
    out = classify_chunk(_chunk(["ALICE", "Hi.", "BOB", "Yo."]))
    assert _dialogue(out) == {"ALICE": [(1, "Hi.")], "BOB": [(3, "Yo.")]}


def test_parenthetical_stays_in_speech():
    out = classify_chunk(_chunk(["ALICE", "(whispering)", "Hi."]))
    assert _dialogue(out) == {"ALICE": [(1, "(whispering) Hi.")]}


def test_action_line_ends_speech_and_clears_speaker():
    out = classify_chunk(_chunk(["ALICE", "Hello.", "She leaves.", "More"]), action_line_numbers={2})
    assert _dialogue(out) == {"ALICE": [(1, "Hello.")]}


def test_action_line_is_never_a_cue():
    out = classify_chunk(_chunk(["FADE IN:", "ALICE", "Hi."]), action_line_numbers={0})
    assert [c.name for c in out.characters] == ["ALICE"]


def test_repeated_cues_accumulate_on_one_character():
    out = classify_chunk(_chunk(["ALICE", "One.", "", "ALICE", "Two.", ""]))
    (alice,) = out.characters
    assert alice.lines == 2
    assert alice.first_appearance == 0


def test_step_is_pure():
    state = ParseState()
    new_state, emitted = step(state, RawLine(0, "ALICE"))
    assert state == ParseState()
    assert new_state.speaker == "ALICE"
    assert emitted == []

    new_state, emitted = step(new_state, RawLine(1, "Hi."))
    new_state, emitted = step(new_state, RawLine(2, ""))
    assert new_state.speaker is None
    assert len(emitted) == 1 and isinstance(emitted[0], SpeechEmitted)
    assert emitted[0].line.text == "Hi."


def test_step_heading_emits_closed_scene():
    state, _ = step(ParseState(), RawLine(0, "INT. A - DAY"))
    state, emitted = step(state, RawLine(4, "INT. B - NIGHT"))
    assert isinstance(emitted[0], SceneClosed)
    assert emitted[0].scene.end_line == 3
    assert state.scene.name == "B"


def test_speech_split_across_chunks_carries_speaker():
    first = classify_chunk(_chunk(["ALICE", "Hello there,"], start=0))
    assert first.carry == CarryOver(speaker="ALICE", speaker_line=0, mid_speech=True)
    assert _dialogue(first) == {"ALICE": [(1, "Hello there,")]}

    second = classify_chunk(_chunk(["how are you?", "", "She sits."], start=2), carry=first.carry)
    assert _dialogue(second) == {"ALICE": [(2, "how are you?")]}
    assert second.characters[0].first_appearance == 0
    assert second.carry is None


def test_carried_speech_ended_by_leading_blank_line():
    first = classify_chunk(_chunk(["ALICE", "Hello there."], start=0))
    second = classify_chunk(_chunk(["", "She sits."], start=2), carry=first.carry)
    assert second.characters == []
