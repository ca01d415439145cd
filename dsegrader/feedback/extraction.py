"""Recover JSON values from free-form LLM replies.

LLMs do not reliably honour "respond with only JSON". Replies arrive as bare
JSON, as a full chat-completion envelope, inside a markdown code fence, or
wrapped in chatter. Strategies are tried in a fixed order and the first one
that yields a value of the requested shape wins.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal

from dsegrader.errors import ExtractionError

logger = logging.getLogger(__name__)

Shape = Literal["object", "array"]

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_QUOTED_RE = re.compile(r'"([^"]+)"')
_FEEDBACK_OBJECT_RE = re.compile(
    r'\{\s*"(?:type|category)"\s*:\s*"([^"]+)"\s*,\s*"segment"\s*:\s*"([^"]+)"\s*,\s*"suggestion"\s*:\s*"([^"]+)"\s*\}'
)
_SCORE_FIELD_RE = {
    field: re.compile(rf'"{field}"\s*:\s*(\d+(?:\.\d+)?)') for field in ("content", "language", "organization", "overall")
}

_BOUNDARIES: dict[str, tuple[str, str]] = {"object": ("{", "}"), "array": ("[", "]")}
_MAX_ENVELOPE_DEPTH = 3


@dataclass(frozen=True)
class Extraction:
    """Tagged extraction outcome: a value and the strategy that found it, or an error."""

    value: Any = None
    strategy: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.strategy is not None


def _matches_shape(value: object, shape: Shape) -> bool:
    if shape == "object":
        return isinstance(value, dict)
    return isinstance(value, list)


def _envelope_content(value: object) -> str | None:
    """Return ``choices[0].message.content`` when ``value`` is a chat-completion envelope."""
    if not isinstance(value, dict):
        return None
    choices = value.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return None


def _loads(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def try_extract(raw: str, shape: Shape = "object", _depth: int = 0) -> Extraction:
    """Run the extraction strategies in order without raising."""
    if not isinstance(raw, str) or not raw.strip():
        return Extraction(error="Empty reply")
    text = raw.strip()

    parsed_ok, parsed = _loads(text)
    if parsed_ok:
        inner = _envelope_content(parsed)
        if inner is not None and _depth < _MAX_ENVELOPE_DEPTH:
            logger.debug("llm reply is a chat-completion envelope; unwrapping", extra={"strategy": "envelope"})
            return try_extract(inner, shape, _depth + 1)
        if _matches_shape(parsed, shape):
            return Extraction(value=parsed, strategy="direct")

    block = _CODE_BLOCK_RE.search(text)
    if block:
        block_ok, block_value = _loads(block.group(1).strip())
        if block_ok and _matches_shape(block_value, shape):
            return Extraction(value=block_value, strategy="code_block")

    opener, closer = _BOUNDARIES[shape]
    first = text.find(opener)
    last = text.rfind(closer)
    if first != -1 and last > first:
        bounded_ok, bounded = _loads(text[first : last + 1])
        if bounded_ok and _matches_shape(bounded, shape):
            return Extraction(value=bounded, strategy="boundaries")

    return Extraction(error=f"No JSON {shape} found in reply")


def extract(raw: str) -> dict[str, Any]:
    """Recover a JSON object from ``raw`` or raise :class:`ExtractionError`."""
    result = try_extract(raw, "object")
    if not result.ok:
        raise ExtractionError(result.error or "Failed to extract valid JSON from text", raw=raw or "")
    logger.debug("extracted llm json", extra={"strategy": result.strategy})
    return result.value


def extract_array(raw: str) -> list[Any]:
    result = try_extract(raw, "array")
    if not result.ok:
        raise ExtractionError(result.error or "Failed to extract a JSON array from text", raw=raw or "")
    return result.value


def extract_quoted_strings(raw: str) -> list[str]:
    if not raw:
        return []
    return [match.strip() for match in _QUOTED_RE.findall(raw) if match.strip()]


def recover_feedback_objects(raw: str) -> list[dict[str, str]]:
    """Pull individual ``{"type", "segment", "suggestion"}`` objects out of a broken array."""
    if not raw:
        return []
    return [
        {"type": category, "segment": segment, "suggestion": suggestion}
        for category, segment, suggestion in _FEEDBACK_OBJECT_RE.findall(raw)
    ]


def recover_scores(raw: str) -> dict[str, float]:
    """Regex out whatever score fields survive in an unparseable reply."""
    if not raw:
        return {}
    recovered: dict[str, float] = {}
    for field, pattern in _SCORE_FIELD_RE.items():
        match = pattern.search(raw)
        if match:
            recovered[field] = float(match.group(1))
    return recovered
