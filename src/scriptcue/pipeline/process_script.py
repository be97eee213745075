"""
process_script.py

End-to-end ingestion job for one uploaded screenplay.

Overview
--------
1) Extract text from the PDF.
2) Segment the text into line-aligned chunks.
3) For each chunk, in order:
     - ask the action classifier which lines are stage directions
     - run the line classifier (scenes, cues, dialogue)
     - merge the chunk result into the accumulated ScriptAnalysis
4) Validate the detected characters.
5) Deduplicate, interleave and sequence all lines.
6) Assign voices.
7) Persist the analysis and voice assignments.

Chunks are processed sequentially: the merger relies on ascending absolute line
numbers, and merge errors are reported with the chunk they came from.

A chunk whose classification fails (malformed or out-of-range classifier
output, or a transient service error that survived retries) is skipped and
recorded in metadata.chunk_errors. Everything else is fatal: the status record
is set to "error" with the message and the exception propagates.

Progress checkpoints are written to the store's status record after every
step, so a client can poll progress and a crashed job leaves its last phase
behind. There is no resumption; a failed job is re-run from the start.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

import pdfplumber
from tqdm import tqdm

from scriptcue.config import PipelineConfig
from scriptcue.errors import ClassificationError, EmptyInputError, ExternalServiceError, MergeInvariantError
from scriptcue.io.pdf_text import extract_text
from scriptcue.io.store import COMPLETED, ERROR, INITIALIZING, PROCESSING, VALIDATING
from scriptcue.llm.actions import ActionClassifier, classify_actions
from scriptcue.merge.merger import merge_chunk
from scriptcue.merge.sequencer import finalize
from scriptcue.models import (
    Character,
    Chunk,
    ChunkError,
    ChunkResult,
    ScriptAnalysis,
    VoiceAssignment,
    character_key,
)
from scriptcue.text.line_classifier import CarryOver, classify_chunk
from scriptcue.text.segmenter import segment
from scriptcue.voices.casting import (
    CharacterValidator,
    VoiceCategoryPredictor,
    assign_voices,
    validate_characters,
)


@dataclass
class Collaborators:
    action_classifier: ActionClassifier
    character_validator: CharacterValidator
    voice_predictor: VoiceCategoryPredictor

    @classmethod
    def openai(cls, config: PipelineConfig, client: Optional[Any] = None) -> "Collaborators":
        from scriptcue.llm.collaborators import (
            OpenAIActionClassifier,
            OpenAICharacterValidator,
            OpenAIVoiceCategoryPredictor,
            make_openai_client,
        )

        client = client or make_openai_client()
        return cls(
            action_classifier=OpenAIActionClassifier(config, client),
            character_validator=OpenAICharacterValidator(config, client),
            voice_predictor=OpenAIVoiceCategoryPredictor(config, client),
        )


@dataclass
class ProcessingResult:
    analysis: ScriptAnalysis
    voice_assignments: Dict[str, VoiceAssignment]


def _is_chunk_level(exc: Exception) -> bool:
    if isinstance(exc, ClassificationError):
        return True
    return isinstance(exc, ExternalServiceError) and exc.retryable


def classify_chunk_result(
    chunk: Chunk,
    chunk_index: int,
    action_classifier: ActionClassifier,
    carry: Optional[CarryOver] = None,
) -> Tuple[ChunkResult, Optional[CarryOver]]:
    """Run both classifiers over one chunk."""
    actions = []
    if chunk.text.strip():
        actions = classify_actions(chunk.text, chunk.start_line, action_classifier)

    classified = classify_chunk(chunk, {a.line_number for a in actions}, carry)
    result = ChunkResult(
        chunk_index=chunk_index,
        start_line=chunk.start_line,
        characters=classified.characters,
        scenes=classified.scenes,
        action_lines=actions,
    )
    return result, classified.carry


def _stitch_split_speech(
    doc: ScriptAnalysis,
    result: ChunkResult,
    chunk: Chunk,
    prev: Chunk,
    carry: Optional[CarryOver],
) -> Tuple[ScriptAnalysis, ChunkResult]:
    """
    A hard-break chunk is a single cut line. When a speech runs across the
    cut, both chunks emit a fragment at that line; append the second fragment
    to the first so the whole line survives the merge.
    """
    if carry is None or not carry.mid_speech:
        return doc, result
    key = character_key(carry.speaker)
    head_owner = next((c for c in doc.characters if c.key == key), None)
    tail_owner = next((c for c in result.characters if c.key == key), None)
    if head_owner is None or tail_owner is None:
        return doc, result
    head = next((d for d in head_owner.dialogue if d.line_number == chunk.start_line), None)
    tail = next((d for d in tail_owner.dialogue if d.line_number == chunk.start_line), None)
    if head is None or tail is None:
        return doc, result

    # cut inside a word unless either side of the cut is whitespace
    sep = " " if prev.text[-1:].isspace() or chunk.text[:1].isspace() else ""
    joined = replace(head, text=head.text + sep + tail.text, multi_line=True)

    characters = []
    for c in doc.characters:
        if c is head_owner:
            c = Character(
                name=c.name,
                first_appearance=c.first_appearance,
                dialogue=[joined if d is head else d for d in c.dialogue],
            )
        characters.append(c)

    tail_owner.dialogue = [d for d in tail_owner.dialogue if d is not tail]
    tail_owner.recount()
    result.characters = [c for c in result.characters if c.dialogue]
    return replace(doc, characters=characters), result


def _join_hard_break(doc: ScriptAnalysis, result: ChunkResult, chunk: Chunk, after_hard_break: bool) -> ChunkResult:
    """
    Whatever else lands on a hard-split line is seen by two chunks. Speeches
    there are flagged multi-line so the merger keeps one, and an action line
    already taken from the previous chunk is not listed again.
    """
    shared = set()
    if after_hard_break:
        shared.add(chunk.start_line)
    if chunk.hard_break:
        shared.add(chunk.end_line)
    if not shared:
        return result

    for c in result.characters:
        for d in c.dialogue:
            if d.line_number in shared:
                d.multi_line = True
    if after_hard_break:
        taken = {a.line_number for a in doc.action_lines}
        result.action_lines = [
            a for a in result.action_lines
            if not (a.line_number == chunk.start_line and a.line_number in taken)
        ]
    return result


def fold_chunks(
    chunks: List[Chunk],
    action_classifier: ActionClassifier,
    *,
    on_chunk: Optional[Callable[[int, int], None]] = None,
    show_progress: bool = True,
) -> ScriptAnalysis:
    """
    Classify and merge chunks in order, threading one ScriptAnalysis through.

    Args:
        chunks: Output of segment(), in document order.
        action_classifier: Text-classification collaborator.
        on_chunk: Called with (chunk_index, chunk_count) after each chunk.
        show_progress: Show a tqdm bar.

    Returns:
        Merged analysis (not yet validated or sequenced). Skipped chunks are
        listed in metadata.chunk_errors.

    Raises:
        MergeInvariantError: a merge failed; the message names the chunk.
    """
    doc = ScriptAnalysis()
    carry: Optional[CarryOver] = None
    after_hard_break = False
    prev_chunk: Optional[Chunk] = None

    for i, chunk in enumerate(tqdm(chunks, desc="chunk-classify", disable=not show_progress)):
        try:
            result, next_carry = classify_chunk_result(chunk, i, action_classifier, carry)
        except (ClassificationError, ExternalServiceError) as exc:
            if not _is_chunk_level(exc):
                raise
            print(f"[warn] skipping chunk {i} (starts at line {chunk.start_line}): {exc}", flush=True)
            err = ChunkError(chunk_index=i, start_line=chunk.start_line, error=str(exc))
            doc = replace(doc, metadata=replace(doc.metadata, chunk_errors=doc.metadata.chunk_errors + [err]))
            carry = None
            after_hard_break = chunk.hard_break
            prev_chunk = chunk
            if on_chunk:
                on_chunk(i, len(chunks))
            continue

        if after_hard_break and prev_chunk is not None:
            doc, result = _stitch_split_speech(doc, result, chunk, prev_chunk, carry)
        result = _join_hard_break(doc, result, chunk, after_hard_break)
        try:
            doc = merge_chunk(doc, result)
        except MergeInvariantError as exc:
            raise type(exc)(f"chunk {i} (starts at line {chunk.start_line}): {exc}") from exc

        carry = next_carry
        after_hard_break = chunk.hard_break
        prev_chunk = chunk
        if on_chunk:
            on_chunk(i, len(chunks))

    return doc


def _run_job(
    load_text: Callable[[], str],
    *,
    script_id: str,
    store: Any,
    collaborators: Collaborators,
    config: PipelineConfig,
) -> ProcessingResult:
    t0 = time.time()
    store.set_status(script_id, INITIALIZING, progress=0, phase="initializing")

    try:
        print("[phase] extract text...", flush=True)
        store.set_status(script_id, PROCESSING, progress=2, phase="extracting text")
        text = load_text()
        if not text.strip():
            raise EmptyInputError("script text is empty")

        chunks = segment(text, config.max_chunk_size)
        print(f"[info] lines={text.count(chr(10)) + 1} chunks={len(chunks)}", flush=True)
        store.set_status(script_id, PROCESSING, progress=5, phase="segmented")

        def checkpoint(i: int, n: int) -> None:
            store.set_status(
                script_id,
                PROCESSING,
                progress=5 + int(65 * (i + 1) / n),
                phase=f"classified chunk {i + 1}/{n}",
            )

        print("[phase] classify + merge chunks...", flush=True)
        doc = fold_chunks(
            chunks,
            collaborators.action_classifier,
            on_chunk=checkpoint,
            show_progress=config.show_progress,
        )
        if doc.metadata.chunk_errors:
            print(f"[warn] {len(doc.metadata.chunk_errors)} of {len(chunks)} chunk(s) skipped", flush=True)

        print("[phase] validate characters...", flush=True)
        store.set_status(script_id, VALIDATING, progress=75, phase="validating characters")
        doc = validate_characters(doc, collaborators.character_validator)

        print("[phase] sequence lines...", flush=True)
        store.set_status(script_id, VALIDATING, progress=85, phase="sequencing lines")
        doc = finalize(doc, lines_per_minute=config.lines_per_minute)

        print("[phase] assign voices...", flush=True)
        store.set_status(script_id, VALIDATING, progress=92, phase="assigning voices")
        assignments = assign_voices(doc.characters, collaborators.voice_predictor, config.voice_pools)

        store.save_analysis(script_id, doc)
        store.save_voice_assignments(script_id, assignments)
        store.set_status(script_id, COMPLETED, progress=100, phase="completed")
    except Exception as exc:
        print(f"[error] script {script_id}: {exc}", flush=True)
        store.set_status(script_id, ERROR, progress=0, phase="error", error=str(exc) or type(exc).__name__)
        raise

    print(
        f"[ok] characters={len(doc.characters)} scenes={len(doc.scenes)} "
        f"lines={doc.metadata.total_lines} elapsed_sec={round(time.time() - t0, 2)}",
        flush=True,
    )
    return ProcessingResult(analysis=doc, voice_assignments=assignments)


def process_script_text(
    text: str,
    *,
    script_id: str,
    store: Any,
    collaborators: Collaborators,
    config: Optional[PipelineConfig] = None,
) -> ProcessingResult:
    """Run the ingestion job on already-extracted text."""
    return _run_job(
        lambda: text,
        script_id=script_id,
        store=store,
        collaborators=collaborators,
        config=config or PipelineConfig(),
    )


def process_script_pdf(
    pdf: Any,
    *,
    script_id: str,
    store: Any,
    collaborators: Collaborators,
    config: Optional[PipelineConfig] = None,
    pdf_open: Callable[..., Any] = pdfplumber.open,
) -> ProcessingResult:
    """
    Run the ingestion job on a screenplay PDF (path or bytes).

    The persisted analysis is the same object returned in the result.
    """
    return _run_job(
        lambda: extract_text(pdf, pdf_open=pdf_open),
        script_id=script_id,
        store=store,
        collaborators=collaborators,
        config=config or PipelineConfig(),
    )
