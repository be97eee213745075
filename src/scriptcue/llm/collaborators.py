"""
collaborators.py

OpenAI-backed implementations of the external collaborators the pipeline
consumes:

    OpenAIActionClassifier        (numbered_lines, instructions) -> raw JSON text
    OpenAICharacterValidator      [{name, firstLine}] -> {name: bool}
    OpenAIVoiceCategoryPredictor  [{name, firstLine}] -> {name: category}
    OpenAISpeechSynthesizer       (text, voice) -> audio bytes

This is the only module that talks to the OpenAI API. The pipeline itself only
depends on the plain call signatures above, so tests pass simple functions
instead.

Every call goes through a bounded tenacity retry policy; the SDK's own retry
is switched off so that policy is the only one. SDK errors are translated to
ExternalServiceError subclasses before the policy sees them.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Sequence

from scriptcue.config import PipelineConfig
from scriptcue.errors import ClassificationFormatError
from scriptcue.llm.actions import numbered_span, parse_action_lines
from scriptcue.llm.cache import ResponseCache
from scriptcue.llm.prompts import (
    build_action_line_prompt,
    build_character_validation_prompt,
    build_voice_category_prompt,
    character_validation_schema,
    voice_category_schema,
)
from scriptcue.llm.retry import exponential_retrying, linear_retrying, translate_openai_error


def make_openai_client() -> Any:
    # Import OpenAI lazily to avoid a hard dependency for non-LLM tests
    from openai import OpenAI

    return OpenAI(max_retries=0)


class _OpenAICollaborator:
    service = "openai"

    def __init__(self, config: PipelineConfig, client: Optional[Any] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = make_openai_client()
        return self._client

    def _guarded(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            translated = translate_openai_error(exc, self.service)
            if translated is exc:
                raise
            raise translated from exc

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        retrying = exponential_retrying(self.config.max_attempts, self.config.backoff_seconds)
        return retrying(self._guarded, fn, *args, **kwargs)

    def _structured(self, prompt: str, name: str, schema: Dict) -> Dict[str, Any]:
        resp = self._call(
            self.client.responses.create,
            model=self.config.llm_model,
            input=[{"role": "user", "content": prompt}],
            text={
                "format": {
                    "type": "json_schema",
                    "name": name,
                    "schema": schema,
                    "strict": True,
                }
            },
        )
        try:
            obj = json.loads(resp.output_text)
        except json.JSONDecodeError as exc:
            raise ClassificationFormatError(f"{self.service} returned invalid JSON: {exc}") from exc
        if not isinstance(obj, dict) or not isinstance(obj.get("characters"), list):
            raise ClassificationFormatError(f"{self.service} returned invalid JSON: {obj}")
        return obj


def _entries(obj: Dict[str, Any], value_key: str, service: str) -> List[tuple]:
    out = []
    for e in obj["characters"]:
        if not isinstance(e, dict) or not isinstance(e.get("name"), str) or value_key not in e:
            raise ClassificationFormatError(f"{service} returned a malformed entry: {e!r}")
        out.append((e["name"], e[value_key]))
    return out


class OpenAIActionClassifier(_OpenAICollaborator):
    service = "action-classifier"

    def __init__(self, config: PipelineConfig, client: Optional[Any] = None):
        super().__init__(config, client)
        self.cache = ResponseCache(config.cache_dir, "action_lines")

    def __call__(self, numbered_lines: str, instructions: str) -> str:
        key = self.cache.key({"model": self.config.llm_model, "input": numbered_lines, "instructions": instructions})
        cached = self.cache.load(key)
        if cached is not None:
            return cached

        resp = self._call(
            self.client.responses.create,
            model=self.config.llm_model,
            input=[{"role": "user", "content": build_action_line_prompt(numbered_lines, instructions)}],
        )
        text = resp.output_text
        # rejected answers raise here and are not cached
        parse_action_lines(text, *numbered_span(numbered_lines))
        self.cache.save(key, text)
        return text


class OpenAICharacterValidator(_OpenAICollaborator):
    service = "character-validator"

    def __init__(self, config: PipelineConfig, client: Optional[Any] = None):
        super().__init__(config, client)
        self.cache = ResponseCache(config.cache_dir, "character_validation")

    def __call__(self, characters: Sequence[Dict[str, str]]) -> Dict[str, bool]:
        key = self.cache.key({"model": self.config.llm_model, "characters": list(characters)})
        cached = self.cache.load(key)
        if cached is not None:
            return cached

        obj = self._structured(
            build_character_validation_prompt(characters),
            "character_validation",
            character_validation_schema(),
        )
        verdicts = {name: value for name, value in _entries(obj, "is_character", self.service)}
        self.cache.save(key, verdicts)
        return verdicts


class OpenAIVoiceCategoryPredictor(_OpenAICollaborator):
    service = "voice-category-predictor"

    def __init__(self, config: PipelineConfig, client: Optional[Any] = None):
        super().__init__(config, client)
        self.cache = ResponseCache(config.cache_dir, "voice_category")

    def __call__(self, characters: Sequence[Dict[str, str]]) -> Dict[str, str]:
        categories = sorted(self.config.voice_pools)
        key = self.cache.key({
            "model": self.config.llm_model,
            "characters": list(characters),
            "categories": categories,
        })
        cached = self.cache.load(key)
        if cached is not None:
            return cached

        obj = self._structured(
            build_voice_category_prompt(characters, categories),
            "voice_category",
            voice_category_schema(categories),
        )
        predicted = {name: value for name, value in _entries(obj, "category", self.service)}
        self.cache.save(key, predicted)
        return predicted


class OpenAISpeechSynthesizer(_OpenAICollaborator):
    """Text-to-speech; retried linearly, never cached."""

    service = "speech-synthesizer"

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        retrying = linear_retrying(self.config.speech_attempts, self.config.speech_backoff_seconds)
        return retrying(self._guarded, fn, *args, **kwargs)

    def __call__(self, text: str, voice: str) -> bytes:
        resp = self._call(
            self.client.audio.speech.create,
            model=self.config.tts_model,
            voice=voice,
            input=text,
        )
        return resp.read()
