#!/usr/bin/env python
"""
Generate speech audio for a processed script.

Every dialogue line of every character except the one you practise is rendered
with the character's assigned voice (voices.json in the store). Existing audio
is reused.

    python scripts/generate_voice_lines.py --script_id <id> --practice ALICE
    python scripts/generate_voice_lines.py --test "To be or not to be." --voice nova --out test.mp3
"""
import argparse
import sys

from scriptcue.config import DEFAULT_TTS_MODEL, PipelineConfig
from scriptcue.io.store import JsonScriptStore
from scriptcue.llm.collaborators import OpenAISpeechSynthesizer
from scriptcue.voices.speech import generate_voice_lines, generate_voice_test


def main() -> None:
    ap = argparse.ArgumentParser(description="Synthesize dialogue audio for a processed screenplay.")
    ap.add_argument("--store", default="data/scripts", help="Root directory of the script store.")
    ap.add_argument("--script_id", help="Script identifier.")
    ap.add_argument("--practice", help="Name of the character the user reads (not synthesized).")
    ap.add_argument("--tts_model", default=DEFAULT_TTS_MODEL)
    ap.add_argument("--attempts", type=int, default=3, help="Attempts per synthesized line.")
    ap.add_argument("--test", help="Render only this test text (needs --voice and --out).")
    ap.add_argument("--voice")
    ap.add_argument("--out")
    args = ap.parse_args()

    config = PipelineConfig(tts_model=args.tts_model, speech_attempts=args.attempts)
    synthesizer = OpenAISpeechSynthesizer(config)

    if args.test is not None:
        if not args.voice or not args.out:
            ap.error("--test needs --voice and --out")
        audio = generate_voice_test(args.test, args.voice, synthesizer)
        with open(args.out, "wb") as f:
            f.write(audio)
        print(f"[ok] voice test ({len(audio)} bytes) -> {args.out}")
        return

    if not args.script_id or not args.practice:
        ap.error("--script_id and --practice are required")

    store = JsonScriptStore(args.store)
    analysis = store.load_analysis(args.script_id)
    if analysis is None:
        print(f"[error] no analysis stored for script {args.script_id}", file=sys.stderr)
        sys.exit(1)

    analysis, stats = generate_voice_lines(
        analysis,
        store.load_voice_assignments(args.script_id),
        args.practice,
        synthesizer,
        store,
        args.script_id,
        lines_per_minute=config.lines_per_minute,
    )
    store.save_analysis(args.script_id, analysis)
    for err in stats.errors:
        print(f"[warn] {err}")


if __name__ == "__main__":
    main()
