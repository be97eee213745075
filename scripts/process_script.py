#!/usr/bin/env python
import argparse
import os
import uuid

from scriptcue.config import DEFAULT_LLM_MODEL, PipelineConfig
from scriptcue.io.store import JsonScriptStore
from scriptcue.pipeline.process_script import Collaborators, process_script_pdf


def main() -> None:
    """
    Command-line entry point for the screenplay ingestion job.

    This script is intentionally thin: all the real work happens in
    scriptcue.pipeline.process_script.process_script_pdf().
    """
    ap = argparse.ArgumentParser(description="Parse a screenplay PDF into characters, scenes and ordered lines.")
    ap.add_argument("--pdf", required=True, help="Path to the screenplay PDF.")
    ap.add_argument("--store", default="data/scripts", help="Root directory of the script store.")
    ap.add_argument("--script_id", default=None, help="Script identifier (default: random UUID).")
    ap.add_argument(
        "--llm_model",
        default=os.environ.get("OPENAI_MODEL", DEFAULT_LLM_MODEL),
        help="OpenAI model used for the classification calls.",
    )
    ap.add_argument(
        "--cache_dir",
        default=os.environ.get("SCRIPTCUE_CACHE_DIR"),
        help="Root directory for LLM response cache files (disabled if unset).",
    )
    ap.add_argument("--max_chunk_size", type=int, default=12000, help="Characters per classifier chunk.")
    ap.add_argument("--lines_per_minute", type=int, default=60, help="Reading pace for the duration estimate.")
    ap.add_argument("--max_attempts", type=int, default=4, help="Attempts per classifier call.")
    ap.add_argument("--backoff_seconds", type=float, default=1.0, help="Initial retry backoff.")
    ap.add_argument("--no_progress", action="store_true", help="Disable progress bars.")

    args = ap.parse_args()

    config = PipelineConfig(
        max_chunk_size=args.max_chunk_size,
        lines_per_minute=args.lines_per_minute,
        max_attempts=args.max_attempts,
        backoff_seconds=args.backoff_seconds,
        llm_model=args.llm_model,
        cache_dir=args.cache_dir,
        show_progress=not args.no_progress,
    )
    script_id = args.script_id or str(uuid.uuid4())
    store = JsonScriptStore(args.store)

    process_script_pdf(
        args.pdf,
        script_id=script_id,
        store=store,
        collaborators=Collaborators.openai(config),
        config=config,
    )
    print(f"[ok] script_id={script_id} -> {os.path.join(args.store, script_id)}", flush=True)


if __name__ == "__main__":
    main()
