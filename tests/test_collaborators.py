import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from scriptcue.config import PipelineConfig
from scriptcue.errors import (
    AuthenticationFailedError,
    ClassificationFormatError,
    ClassificationRangeError,
    QuotaExceededError,
    RateLimitedError,
    RequestRejectedError,
    ServiceUnavailableError,
)
from scriptcue.io.store import JsonScriptStore
from scriptcue.llm.collaborators import (
    OpenAIActionClassifier,
    OpenAICharacterValidator,
    OpenAISpeechSynthesizer,
    OpenAIVoiceCategoryPredictor,
)
from scriptcue.llm.prompts import number_lines
from scriptcue.llm.retry import translate_openai_error
from scriptcue.pipeline.process_script import Collaborators, process_script_text

CONFIG = PipelineConfig(backoff_seconds=0, speech_backoff_seconds=0, max_attempts=3, llm_model="test-model")
REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


def _status_error(cls, status, body=None):
    return cls("failed", response=httpx.Response(status, request=REQUEST), body=body)


class FakeResponses:
    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        out = self.outputs.pop(0)
        if isinstance(out, Exception):
            raise out
        return SimpleNamespace(output_text=out)


def _client(*outputs):
    return SimpleNamespace(responses=FakeResponses(outputs))


def test_action_classifier_returns_raw_text():
    client = _client('[{"text": "She sits.", "lineNumber": 3}]')
    out = OpenAIActionClassifier(CONFIG, client)("3: She sits.", "find actions")
    assert out == '[{"text": "She sits.", "lineNumber": 3}]'
    call = client.responses.calls[0]
    assert call["model"] == "test-model"
    assert "3: She sits." in call["input"][0]["content"]


def test_rate_limit_is_retried():
    client = _client(_status_error(openai.RateLimitError, 429), "[]")
    assert OpenAIActionClassifier(CONFIG, client)("0: x", "i") == "[]"
    assert len(client.responses.calls) == 2


def test_retries_are_bounded():
    errors = [openai.APIConnectionError(request=REQUEST) for _ in range(5)]
    client = _client(*errors)
    with pytest.raises(ServiceUnavailableError):
        OpenAIActionClassifier(CONFIG, client)("0: x", "i")
    assert len(client.responses.calls) == CONFIG.max_attempts


def test_authentication_error_is_not_retried():
    client = _client(_status_error(openai.AuthenticationError, 401), "[]")
    with pytest.raises(AuthenticationFailedError):
        OpenAIActionClassifier(CONFIG, client)("0: x", "i")
    assert len(client.responses.calls) == 1


def test_error_translation():
    quota = _status_error(openai.RateLimitError, 429, body={"code": "insufficient_quota", "message": "quota"})
    assert isinstance(translate_openai_error(quota, "svc"), QuotaExceededError)
    assert isinstance(translate_openai_error(_status_error(openai.RateLimitError, 429), "svc"), RateLimitedError)
    assert isinstance(translate_openai_error(_status_error(openai.InternalServerError, 500), "svc"), ServiceUnavailableError)
    assert isinstance(translate_openai_error(openai.APITimeoutError(request=REQUEST), "svc"), ServiceUnavailableError)
    assert isinstance(translate_openai_error(_status_error(openai.BadRequestError, 400), "svc"), RequestRejectedError)
    assert isinstance(translate_openai_error(_status_error(openai.NotFoundError, 404), "svc"), RequestRejectedError)
    other = ValueError("x")
    assert translate_openai_error(other, "svc") is other


def test_character_validator_maps_names_to_verdicts():
    payload = {"characters": [{"name": "ALICE", "is_character": True}, {"name": "FADE OUT", "is_character": False}]}
    client = _client(json.dumps(payload))
    out = OpenAICharacterValidator(CONFIG, client)([{"name": "ALICE", "firstLine": "Hi."}, {"name": "FADE OUT", "firstLine": ""}])
    assert out == {"ALICE": True, "FADE OUT": False}
    fmt = client.responses.calls[0]["text"]["format"]
    assert fmt["type"] == "json_schema" and fmt["strict"] is True


def test_voice_predictor_constrains_categories():
    client = _client(json.dumps({"characters": [{"name": "ALICE", "category": "female"}]}))
    out = OpenAIVoiceCategoryPredictor(CONFIG, client)([{"name": "ALICE", "firstLine": "Hi."}])
    assert out == {"ALICE": "female"}
    schema = client.responses.calls[0]["text"]["format"]["schema"]
    assert schema["properties"]["characters"]["items"]["properties"]["category"]["enum"] == ["female", "male"]


def test_malformed_structured_output_is_rejected():
    client = _client(json.dumps({"names": []}))
    with pytest.raises(ClassificationFormatError):
        OpenAICharacterValidator(CONFIG, client)([{"name": "ALICE", "firstLine": ""}])


def test_responses_are_cached(tmp_path):
    config = PipelineConfig(cache_dir=str(tmp_path), llm_model="test-model")
    client = _client("[]")
    classifier = OpenAIActionClassifier(config, client)
    assert classifier("0: x", "i") == "[]"
    assert classifier("0: x", "i") == "[]"
    assert len(client.responses.calls) == 1


def test_speech_synthesizer_retries_linearly():
    class FakeSpeech:
        def __init__(self):
            self.calls = []

        def create(self, **kwargs):
            self.calls.append(kwargs)
            if len(self.calls) == 1:
                raise openai.APITimeoutError(request=REQUEST)
            return SimpleNamespace(read=lambda: b"mp3")

    speech = FakeSpeech()
    client = SimpleNamespace(audio=SimpleNamespace(speech=speech))
    assert OpenAISpeechSynthesizer(CONFIG, client)("Hello.", "nova") == b"mp3"
    assert speech.calls[-1] == {"model": "tts-1", "voice": "nova", "input": "Hello."}
    assert len(speech.calls) == 2


def test_unknown_model_is_not_retried():
    client = _client(_status_error(openai.NotFoundError, 404), "[]")
    with pytest.raises(RequestRejectedError):
        OpenAIActionClassifier(CONFIG, client)("0: x", "i")
    assert len(client.responses.calls) == 1


def test_rejected_request_fails_the_job_with_its_cause(tmp_path):
    client = _client(*[_status_error(openai.NotFoundError, 404) for _ in range(3)])
    collaborators = Collaborators(
        action_classifier=OpenAIActionClassifier(CONFIG, client),
        character_validator=lambda payload: {c["name"]: True for c in payload},
        voice_predictor=lambda payload: {c["name"]: "female" for c in payload},
    )
    store = JsonScriptStore(str(tmp_path))
    with pytest.raises(RequestRejectedError):
        process_script_text(
            "ALICE\nHello.",
            script_id="s",
            store=store,
            collaborators=collaborators,
            config=PipelineConfig(show_progress=False),
        )
    status = store.load_status("s")
    assert status["status"] == "error"
    assert "request rejected" in status["error"]
    assert len(client.responses.calls) == 1


def test_out_of_range_answer_is_not_cached(tmp_path):
    config = PipelineConfig(cache_dir=str(tmp_path), llm_model="test-model")
    numbered = number_lines("She sits.\nShe stands.", 0)

    bad = _client('[{"text": "x", "lineNumber": 99}]')
    with pytest.raises(ClassificationRangeError):
        OpenAIActionClassifier(config, bad)(numbered, "i")

    good = _client('[{"text": "She stands.", "lineNumber": 1}]')
    assert OpenAIActionClassifier(config, good)(numbered, "i") == '[{"text": "She stands.", "lineNumber": 1}]'
    assert len(good.responses.calls) == 1

    again = _client("[]")
    OpenAIActionClassifier(config, again)(numbered, "i")
    assert again.responses.calls == []
