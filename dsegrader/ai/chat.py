"""Chat-completion client for the grading LLM (OpenRouter, OpenAI protocol)."""

from __future__ import annotations

import base64
import json
import logging
import re
import time
from typing import Any, Protocol

import httpx

from dsegrader.errors import LLMRequestError, LLMUnavailableError, RateLimitError
from dsegrader.settings import Settings, settings

logger = logging.getLogger(__name__)

APP_TITLE = "Essay Grading Platform"


class ChatClient(Protocol):
    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        json_mode: bool = False,
        purpose: str = "chat",
    ) -> str:
        """Return the text of the first completion choice."""

    def read_image(self, prompt: str, image_bytes: bytes, mime_type: str, *, purpose: str = "ocr") -> str:
        """Return the model's reading of a single image."""


def build_chat_request(
    model: str,
    prompt: str,
    system_prompt: str | None = None,
    temperature: float = 0.3,
    max_tokens: int = 2000,
    json_mode: bool = False,
) -> dict[str, object]:
    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "response_format": {"type": "json_object" if json_mode else "text"},
    }


def build_image_request(model: str, prompt: str, image_bytes: bytes, mime_type: str, max_tokens: int = 4000) -> dict[str, object]:
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                ],
            }
        ],
        "temperature": 0.0,
        "max_tokens": max_tokens,
    }


def _retry_after_seconds(exc: Exception) -> float | None:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class OpenRouterChatClient:
    """OpenAI-protocol client. The SDK client is built on first use; a missing key raises LLMUnavailableError then."""

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings
        self._model = self._config.llm_model
        self._client = None

    def _sdk(self):
        if self._client is None:
            api_key = self._config.openrouter_api_key.strip()
            if not api_key:
                raise LLMUnavailableError("The grading service is not configured. Please contact the administrator.")

            from openai import OpenAI

            self._client = OpenAI(
                api_key=api_key,
                base_url=self._config.llm_base_url,
                timeout=self._config.llm_timeout_seconds,
                max_retries=0,
                default_headers={"HTTP-Referer": self._config.app_url, "X-Title": APP_TITLE},
            )
        return self._client

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        json_mode: bool = False,
        purpose: str = "chat",
    ) -> str:
        payload = build_chat_request(
            self._model,
            prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
        )
        return self._create(payload, purpose)

    def read_image(self, prompt: str, image_bytes: bytes, mime_type: str, *, purpose: str = "ocr") -> str:
        return self._create(build_image_request(self._model, prompt, image_bytes, mime_type), purpose)

    def _create(self, payload: dict[str, object], purpose: str) -> str:
        import openai

        client = self._sdk()
        started = time.perf_counter()
        try:
            response = client.chat.completions.create(**payload)
        except openai.RateLimitError as exc:
            raise RateLimitError(
                "Rate limit reached for the grading model. Please try again in a few minutes.",
                retry_after=_retry_after_seconds(exc),
            ) from exc
        except (openai.APITimeoutError, httpx.TimeoutException, TimeoutError) as exc:
            raise LLMRequestError(status_code=504, body=str(exc), message=f"LLM request timed out: {exc}") from exc
        except openai.APIStatusError as exc:
            body = getattr(exc.response, "text", "") or str(exc)
            if exc.status_code == 429:
                raise RateLimitError(
                    "Rate limit reached for the grading model. Please try again in a few minutes.",
                    retry_after=_retry_after_seconds(exc),
                ) from exc
            raise LLMRequestError(status_code=exc.status_code, body=body, message=f"LLM request failed: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise LLMRequestError(status_code=None, body=str(exc), message=f"LLM connection failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        logger.info(
            "llm completion",
            extra={
                "purpose": purpose,
                "model": self._model,
                "llm_ms": int((time.perf_counter() - started) * 1000),
                "chars": len(content or ""),
            },
        )
        return (content or "").strip()


_ESSAY_MARKER_RE = re.compile(r"Essay(?: content)?:\s*\n(?P<essay>[\s\S]*?)(?:\n\n[A-Z][^\n]*:|\Z)")
_SEGMENTS_MARKER_RE = re.compile(r"^Segments to analyze: (?P<segments>\[.*\])$", re.MULTILINE)


class MockChatClient:
    """Deterministic offline stand-in that answers each pipeline stage plausibly."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        json_mode: bool = False,
        purpose: str = "chat",
    ) -> str:
        self.calls.append({"purpose": purpose, "temperature": temperature})
        if purpose == "scores":
            if "0-7" in prompt:
                return json.dumps({"content": 5, "language": 4, "organization": 5, "overall": 14})
            return json.dumps({"content": 72, "language": 65, "organization": 70, "overall": 69})
        if purpose == "segments":
            match = _ESSAY_MARKER_RE.search(prompt)
            essay = match.group("essay") if match else ""
            sentences = [part.strip() for part in re.split(r"[.!?]+", essay) if part.strip()]
            return json.dumps(sentences[:3])
        if purpose == "comments":
            match = _SEGMENTS_MARKER_RE.search(prompt)
            try:
                segments = json.loads(match.group("segments")) if match else []
            except json.JSONDecodeError:
                segments = []
            return json.dumps(
                [
                    {
                        "type": "Grammar" if idx % 2 == 0 else "Organization",
                        "segment": segment,
                        "suggestion": "Check verb tenses here and link this idea to your main argument.",
                    }
                    for idx, segment in enumerate(segments)
                ]
            )
        if purpose == "ocr_cleanup":
            return prompt.split("\n\n", 1)[-1]
        return ""

    def read_image(self, prompt: str, image_bytes: bytes, mime_type: str, *, purpose: str = "ocr") -> str:
        self.calls.append({"purpose": purpose, "mime_type": mime_type, "bytes": len(image_bytes)})
        return "[mock-ocr] Extracted essay text."


def get_chat_client() -> ChatClient:
    """FastAPI dependency: build a chat client for the current request."""
    if settings.llm_mock:
        return MockChatClient()
    return OpenRouterChatClient(settings)
