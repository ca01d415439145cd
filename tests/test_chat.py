from __future__ import annotations

import base64
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from dsegrader.ai.chat import MockChatClient, OpenRouterChatClient, build_chat_request, build_image_request, get_chat_client
from dsegrader.errors import LLMRequestError, LLMUnavailableError, RateLimitError
from dsegrader.feedback import prompts
from dsegrader.grading.policy import ScoreScale
from dsegrader.settings import Settings, settings


def _client_raising(exc: Exception) -> OpenRouterChatClient:
    def create(**_payload):
        raise exc

    client = OpenRouterChatClient(Settings(OPENROUTER_API_KEY="test-key"))
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client


def _status_response(status_code: int, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status_code, headers=headers or {}, request=httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions"))


def test_build_chat_request_includes_system_prompt_and_json_mode() -> None:
    payload = build_chat_request("model-x", "Grade this", system_prompt="You are an examiner", temperature=0.4, json_mode=True)

    assert payload["model"] == "model-x"
    assert payload["messages"] == [
        {"role": "system", "content": "You are an examiner"},
        {"role": "user", "content": "Grade this"},
    ]
    assert payload["temperature"] == 0.4
    assert payload["response_format"] == {"type": "json_object"}


def test_build_chat_request_without_system_prompt_uses_text_format() -> None:
    payload = build_chat_request("model-x", "Hello")

    assert payload["messages"] == [{"role": "user", "content": "Hello"}]
    assert payload["response_format"] == {"type": "text"}


def test_build_image_request_embeds_a_data_url() -> None:
    payload = build_image_request("model-x", "Read this", b"\x89PNG", "image/png")

    content = payload["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "Read this"}
    assert content[1]["image_url"]["url"] == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()


def test_missing_api_key_raises_unavailable_on_first_call() -> None:
    client = OpenRouterChatClient(Settings(OPENROUTER_API_KEY=""))

    with pytest.raises(LLMUnavailableError):
        client.complete("hi")


def test_successful_completion_returns_stripped_content() -> None:
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="  {\"a\": 1}\n"))])
    captured: dict[str, object] = {}

    def create(**payload):
        captured.update(payload)
        return response

    client = OpenRouterChatClient(Settings(OPENROUTER_API_KEY="test-key", llm_model="model-y"))
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    assert client.complete("prompt", temperature=0.2, purpose="scores") == '{"a": 1}'
    assert captured["model"] == "model-y"
    assert captured["temperature"] == 0.2


def test_rate_limit_maps_to_rate_limit_error_with_retry_after() -> None:
    exc = openai.RateLimitError("slow down", response=_status_response(429, {"retry-after": "12"}), body=None)

    with pytest.raises(RateLimitError) as excinfo:
        _client_raising(exc).complete("hi")

    assert excinfo.value.retry_after == 12.0


def test_server_error_maps_to_request_error() -> None:
    exc = openai.InternalServerError("boom", response=_status_response(502), body=None)

    with pytest.raises(LLMRequestError) as excinfo:
        _client_raising(exc).complete("hi")

    assert excinfo.value.status_code == 502


def test_timeout_maps_to_gateway_timeout_request_error() -> None:
    exc = openai.APITimeoutError(request=httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions"))

    with pytest.raises(LLMRequestError) as excinfo:
        _client_raising(exc).complete("hi")

    assert excinfo.value.status_code == 504


def test_mock_client_answers_each_stage() -> None:
    client = MockChatClient()
    essay = "I like apples. They is tasty! Do you agree?"

    raw_scores = json.loads(client.complete(prompts.score_prompt("Food", essay, ScoreScale.RAW), purpose="scores"))
    segments = json.loads(client.complete(prompts.segment_prompt("Food", essay), purpose="segments"))
    comments = json.loads(client.complete(prompts.comment_prompt("Food", segments), purpose="comments"))

    assert raw_scores["content"] <= 7
    assert segments == ["I like apples", "They is tasty", "Do you agree"]
    assert [item["segment"] for item in comments] == segments
    assert [call["purpose"] for call in client.calls] == ["scores", "segments", "comments"]


def test_get_chat_client_honours_mock_flag(monkeypatch) -> None:
    monkeypatch.setattr(settings, "llm_mock", True)
    assert isinstance(get_chat_client(), MockChatClient)

    monkeypatch.setattr(settings, "llm_mock", False)
    assert isinstance(get_chat_client(), OpenRouterChatClient)
