from types import SimpleNamespace

import pytest
import requests
from google.api_core import exceptions as google_exceptions
from PIL import Image

from screenlog import gemini_client, local_llm_client
from screenlog.analysis import AIServiceError, build_describe_prompt
from screenlog.config import GeminiSettings, LocalLLMSettings
from screenlog.continuity import analyze
from screenlog.models import AppInfo


@pytest.fixture
def screenshot(tmp_path):
    path = tmp_path / "shot.png"
    Image.new("RGB", (32, 32), "black").save(path)
    return path


class FakeModel:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def generate_content(self, contents, generation_config=None):
        self.calls.append(contents)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_gemini(monkeypatch, logger, outcomes, max_retries=0):
    model = FakeModel(outcomes)
    monkeypatch.setattr(gemini_client.genai, "configure", lambda **kwargs: None)
    monkeypatch.setattr(gemini_client.genai, "GenerativeModel", lambda name: model)
    monkeypatch.setattr(gemini_client.time, "sleep", lambda seconds: None)
    settings = GeminiSettings(api_key="key", model="gemini-2.0-flash", max_tokens=256, temperature=0.2, max_retries=max_retries, retry_buffer_seconds=0)
    return gemini_client.GeminiClient(settings, logger), model


class BlockedResponse:
    @property
    def text(self):
        raise ValueError("no valid Part")


def test_describe_prompt_lists_apps_and_continuity(clock):
    apps = [AppInfo("Safari", "Docs", True), AppInfo("Mail")]
    prompt = build_describe_prompt(apps, analyze(None, apps, clock()))

    assert "Safari (Docs) (frontmost), Mail" in prompt
    assert "新しい作業" in prompt


def test_gemini_describe_sends_prompt_and_image(monkeypatch, logger, screenshot):
    client, model = make_gemini(monkeypatch, logger, [SimpleNamespace(text=" ブラウザで調べ物 \n")])

    text = client.describe(screenshot, [AppInfo("Safari", is_frontmost=True)])

    assert text == "ブラウザで調べ物"
    prompt, image = model.calls[0]
    assert "Safari (frontmost)" in prompt
    assert image.size == (32, 32)


def test_gemini_api_error_carries_status(monkeypatch, logger):
    client, _ = make_gemini(monkeypatch, logger, [google_exceptions.InternalServerError("boom")])

    with pytest.raises(AIServiceError) as excinfo:
        client.synthesize("まとめて")

    assert excinfo.value.status == 500
    assert "boom" in excinfo.value.body


def test_gemini_blocked_response_is_malformed(monkeypatch, logger):
    client, _ = make_gemini(monkeypatch, logger, [BlockedResponse()])

    with pytest.raises(AIServiceError, match="Malformed"):
        client.synthesize("まとめて")


def test_gemini_retries_rate_limits_when_configured(monkeypatch, logger):
    client, model = make_gemini(
        monkeypatch,
        logger,
        [google_exceptions.ResourceExhausted("Please retry in 1.5s"), SimpleNamespace(text="ok")],
        max_retries=1,
    )

    assert client.synthesize("まとめて") == "ok"
    assert len(model.calls) == 2


def test_gemini_does_not_retry_by_default(monkeypatch, logger):
    client, model = make_gemini(monkeypatch, logger, [google_exceptions.ResourceExhausted("quota")])

    with pytest.raises(AIServiceError) as excinfo:
        client.synthesize("まとめて")

    assert excinfo.value.status == 429
    assert len(model.calls) == 1


LOCAL_SETTINGS = LocalLLMSettings(
    base_url="http://localhost:1234/v1",
    model="qwen2-vl",
    api_key=None,
    max_tokens=256,
    temperature=0.2,
    timeout_seconds=5,
)


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


def test_local_describe_posts_image_as_data_url(monkeypatch, logger, screenshot):
    posted = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        posted.update(url=url, json=json)
        return FakeResponse(200, {"choices": [{"message": {"content": "表計算をしています"}}]})

    monkeypatch.setattr(local_llm_client.requests, "post", fake_post)
    client = local_llm_client.LocalLLMClient(LOCAL_SETTINGS, logger)

    assert client.describe(screenshot, [AppInfo("Excel", is_frontmost=True)]) == "表計算をしています"
    assert posted["url"] == "http://localhost:1234/v1/chat/completions"
    content = posted["json"]["messages"][0]["content"]
    assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")
    assert posted["json"]["model"] == "qwen2-vl"


@pytest.mark.parametrize(
    "response, status",
    [
        (FakeResponse(503, text="loading model"), 503),
        (FakeResponse(200, None, text="<html>"), 200),
        (FakeResponse(200, {"choices": []}), 200),
        (FakeResponse(200, {"choices": [{"message": "hi"}]}), 200),
        (FakeResponse(200, {"choices": {"a": 1}}), 200),
        (FakeResponse(200, {"choices": "x"}), 200),
        (FakeResponse(200, {"choices": [None]}), 200),
        (FakeResponse(200, ["not", "an", "object"]), 200),
    ],
)
def test_local_errors_raise_ai_service_error(monkeypatch, logger, response, status):
    monkeypatch.setattr(local_llm_client.requests, "post", lambda *args, **kwargs: response)
    client = local_llm_client.LocalLLMClient(LOCAL_SETTINGS, logger)

    with pytest.raises(AIServiceError) as excinfo:
        client.synthesize("まとめて")

    assert excinfo.value.status == status


def test_local_connection_error(monkeypatch, logger):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(local_llm_client.requests, "post", refuse)
    client = local_llm_client.LocalLLMClient(LOCAL_SETTINGS, logger)

    with pytest.raises(AIServiceError) as excinfo:
        client.synthesize("まとめて")

    assert excinfo.value.status is None


def test_local_model_auto_detection(monkeypatch, logger):
    monkeypatch.setattr(
        local_llm_client.requests,
        "get",
        lambda *args, **kwargs: FakeResponse(200, {"data": [{"id": "llava-1.6"}]}),
    )
    settings = LocalLLMSettings(**{**LOCAL_SETTINGS.__dict__, "model": "auto"})

    client = local_llm_client.LocalLLMClient(settings, logger)

    assert client._model == "llava-1.6"
