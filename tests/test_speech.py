import pytest

from scriptcue.errors import (
    AuthenticationFailedError,
    EmptyInputError,
    InvalidVoiceError,
    NoVoiceLinesGeneratedError,
    RateLimitedError,
)
from scriptcue.io.store import JsonScriptStore
from scriptcue.merge.sequencer import finalize
from scriptcue.models import Character, DialogueLine, ScriptAnalysis, VoiceAssignment
from scriptcue.voices.speech import generate_voice_lines, generate_voice_test


def _analysis():
    return finalize(ScriptAnalysis(characters=[
        Character("ALICE", 0, [DialogueLine("Hello there.", 1), DialogueLine("Bye.", 7)]),
        Character("BOB", 3, [DialogueLine("Hi Alice.", 4)]),
        Character("CAROL", 5, [DialogueLine("Morning.", 6)]),
    ]))


ASSIGNMENTS = {
    "ALICE": VoiceAssignment("ALICE", "nova", "female", "Hello there."),
    "BOB": VoiceAssignment("BOB", "onyx", "male", "Hi Alice."),
}


class RecordingSynth:
    def __init__(self, fail_on=(), error=RateLimitedError):
        self.calls = []
        self.fail_on = set(fail_on)
        self.error = error

    def __call__(self, text, voice):
        self.calls.append((text, voice))
        if text in self.fail_on:
            raise self.error(f"cannot voice {text!r}")
        return f"{voice}:{text}".encode()


def test_voice_test_validates_input():
    synth = RecordingSynth()
    assert generate_voice_test("To be.", "sage", synth) == b"sage:To be."
    with pytest.raises(InvalidVoiceError):
        generate_voice_test("To be.", "robot", synth)
    with pytest.raises(EmptyInputError):
        generate_voice_test("  ", "sage", synth)


def test_practice_and_unassigned_characters_are_skipped(tmp_path):
    store = JsonScriptStore(str(tmp_path))
    synth = RecordingSynth()
    doc, stats = generate_voice_lines(_analysis(), ASSIGNMENTS, "alice", synth, store, "s1", show_progress=False)

    assert synth.calls == [("Hi Alice.", "onyx")]
    assert stats.to_dict() == {"totalLines": 1, "successfulLines": 1, "failedLines": 0, "errors": []}

    bob_line = doc.character("BOB").dialogue[0]
    assert bob_line.voices["onyx"] == store.audio_path("s1", "BOB", 4, "onyx")
    processed = {p.original_line_number: p for p in doc.processed_lines}
    assert processed[4].voices == bob_line.voices
    assert processed[1].is_user and processed[7].is_user


def test_existing_audio_is_reused(tmp_path):
    store = JsonScriptStore(str(tmp_path))
    store.save_audio("s1", "BOB", 4, "onyx", b"old")
    synth = RecordingSynth()
    doc, stats = generate_voice_lines(_analysis(), ASSIGNMENTS, "CAROL", synth, store, "s1", show_progress=False)

    assert ("Hi Alice.", "onyx") not in synth.calls
    assert len(synth.calls) == 2
    assert stats.successful_lines == 3
    assert doc.character("BOB").dialogue[0].voices == {"onyx": store.audio_path("s1", "BOB", 4, "onyx")}


def test_transient_failures_are_counted_and_skipped(tmp_path):
    synth = RecordingSynth(fail_on={"Bye."})
    doc, stats = generate_voice_lines(
        _analysis(), ASSIGNMENTS, "CAROL", synth, JsonScriptStore(str(tmp_path)), "s1", show_progress=False
    )
    assert (stats.total_lines, stats.successful_lines, stats.failed_lines) == (3, 2, 1)
    assert "ALICE, line 7" in stats.errors[0]
    assert doc.character("ALICE").dialogue[1].voices == {}


def test_authentication_failure_aborts(tmp_path):
    synth = RecordingSynth(fail_on={"Hi Alice."}, error=AuthenticationFailedError)
    with pytest.raises(AuthenticationFailedError):
        generate_voice_lines(
            _analysis(), ASSIGNMENTS, "ALICE", synth, JsonScriptStore(str(tmp_path)), "s1", show_progress=False
        )


def test_nothing_generated_is_an_error(tmp_path):
    synth = RecordingSynth(fail_on={"Hi Alice."})
    with pytest.raises(NoVoiceLinesGeneratedError):
        generate_voice_lines(
            _analysis(), ASSIGNMENTS, "ALICE", synth, JsonScriptStore(str(tmp_path)), "s1", show_progress=False
        )


def test_input_analysis_is_not_modified(tmp_path):
    analysis = _analysis()
    generate_voice_lines(
        analysis, ASSIGNMENTS, "ALICE", RecordingSynth(), JsonScriptStore(str(tmp_path)), "s1", show_progress=False
    )
    assert analysis.character("BOB").dialogue[0].voices == {}
