from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

# Voices the speech provider accepts.
VALID_VOICES = ("alloy", "ash", "coral", "echo", "fable", "onyx", "nova", "sage", "shimmer")

# Predicted category -> voices, in the order they are handed out.
DEFAULT_VOICE_POOLS: Dict[str, Tuple[str, ...]] = {
    "male": ("onyx", "echo", "fable", "ash"),
    "female": ("nova", "shimmer", "alloy", "coral", "sage"),
}

DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_TTS_MODEL = "tts-1"


@dataclass(frozen=True)
class PipelineConfig:
    """
    Tunables for one processing job.

    max_chunk_size: character ceiling per chunk sent to the action classifier.
    lines_per_minute: reading pace used for metadata.estimatedDuration.
    max_attempts / backoff_seconds: exponential retry for classifier calls.
    speech_attempts / speech_backoff_seconds: linear retry for speech synthesis.
    cache_dir: if set, collaborator responses are cached on disk.
    """
    max_chunk_size: int = 12000
    lines_per_minute: int = 60
    max_attempts: int = 4
    backoff_seconds: float = 1.0
    speech_attempts: int = 3
    speech_backoff_seconds: float = 1.0
    llm_model: str = field(default_factory=lambda: os.environ.get("OPENAI_MODEL", DEFAULT_LLM_MODEL))
    tts_model: str = DEFAULT_TTS_MODEL
    cache_dir: Optional[str] = None
    voice_pools: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_VOICE_POOLS))
    show_progress: bool = True

    def __post_init__(self) -> None:
        if self.max_chunk_size < 1:
            raise ValueError(f"max_chunk_size must be positive, got {self.max_chunk_size}")
        if self.lines_per_minute < 1:
            raise ValueError(f"lines_per_minute must be positive, got {self.lines_per_minute}")
        if len(self.voice_pools) != 2:
            raise ValueError("voice_pools must define exactly two categories")
        for category, voices in self.voice_pools.items():
            if not voices:
                raise ValueError(f"voice pool {category!r} is empty")
            unknown = [v for v in voices if v not in VALID_VOICES]
            if unknown:
                raise ValueError(f"voice pool {category!r} has unknown voices: {unknown}")
