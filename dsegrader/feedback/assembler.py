"""Feedback assembly: scores, salient segments, commentary and highlighting.

Every stage degrades to a fixed fallback instead of failing, so a caller
always receives a usable :class:`DetailedFeedback`. Two failures are not
absorbed: the provider throttling us (:class:`RateLimitError`) and the
provider not being configured at all (:class:`LLMUnavailableError`).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from dsegrader.ai.chat import ChatClient
from dsegrader.errors import ExtractionError, LLMRequestError, PayloadValidationError
from dsegrader.feedback import prompts
from dsegrader.feedback.categories import Category, normalize_category
from dsegrader.feedback.extraction import (
    extract,
    extract_quoted_strings,
    recover_feedback_objects,
    recover_scores,
    try_extract,
)
from dsegrader.feedback.highlight import highlight
from dsegrader.feedback.prompts import STANDARD, PromptVariant
from dsegrader.grading.policy import fallback_scores, scores_from_payload
from dsegrader.schemas import DetailedFeedback, EssayScores, FeedbackItem

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUGGESTION_CHARS = 200
FALLBACK_SEGMENT_CHARS = 50

GENERIC_SUGGESTIONS = frozenset(
    {
        "review this section for possible improvements in grammar, word choice, or clarity.",
        "review this section.",
        "review this section for possible improvements.",
        "no feedback.",
        "n/a",
    }
)

FALLBACK_SUGGESTIONS = (
    "Consider revising for clarity and precision. Focus on making your point more direct.",
    "This shows good vocabulary use. Consider how it connects to your main argument.",
    "Review for grammatical accuracy. Check subject-verb agreement and tense consistency.",
    "Good point that could be strengthened with a specific example to support your claim.",
    "Consider restructuring this sentence for better flow and readability.",
    "Strong vocabulary choice. Continue developing this idea with supporting details.",
    "This transition works well. Consider how it connects your paragraphs thematically.",
    "Review for conciseness. Can you express this idea more directly?",
    "Interesting point that addresses the prompt well. Consider expanding on this idea.",
    "Check spelling and punctuation. Consistent mechanics strengthen your writing.",
)

FALLBACK_CATEGORIES = (
    Category.GRAMMAR,
    Category.WORD_CHOICE,
    Category.SENTENCE_FLOW,
    Category.CLARITY,
    Category.STYLE,
    Category.IDEA_DEVELOPMENT,
    Category.ORGANIZATION,
    Category.RELEVANCE,
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


@dataclass(frozen=True)
class EssayText:
    content: str
    prompt: str


def first_sentences(content: str, count: int) -> list[str]:
    """Leading sentences of ``content``, each trimmed and cut to a verbatim prefix."""
    sentences = [part.strip() for part in _SENTENCE_SPLIT_RE.split(content) if part.strip()]
    return [sentence[:FALLBACK_SEGMENT_CHARS].strip() for sentence in sentences[:count]]


def _string_list(values: object) -> list[str]:
    if isinstance(values, Mapping):
        for key in ("segments", "items", "data"):
            if isinstance(values.get(key), list):
                values = values[key]
                break
    if not isinstance(values, list):
        return []
    return [value.strip() for value in values if isinstance(value, str) and value.strip()]


def _verbatim(segments: Sequence[str], content: str) -> list[str]:
    return [segment for segment in segments if segment in content]


def _raw_items(reply: str) -> list[Mapping[str, object]]:
    extraction = try_extract(reply, "array")
    if extraction.ok:
        candidates = extraction.value
    else:
        wrapped = try_extract(reply, "object")
        candidates = []
        if wrapped.ok:
            for key in ("feedbackItems", "feedback_items", "items"):
                if isinstance(wrapped.value.get(key), list):
                    candidates = wrapped.value[key]
                    break
        if not candidates:
            candidates = recover_feedback_objects(reply)
    return [candidate for candidate in candidates if isinstance(candidate, Mapping)]


def validate_feedback_items(
    raw_items: Sequence[Mapping[str, object]],
    max_suggestion_chars: int = DEFAULT_MAX_SUGGESTION_CHARS,
    essay: str | None = None,
) -> list[FeedbackItem]:
    """Normalize categories, drop unusable items and renumber the survivors from 1.

    When ``essay`` is given, items whose segment is not a verbatim substring of
    it are dropped too.
    """
    survivors: list[tuple[Category, str, str]] = []
    for raw in raw_items:
        segment = raw.get("segment")
        suggestion = raw.get("suggestion")
        segment = segment if isinstance(segment, str) else ""
        suggestion = suggestion.strip() if isinstance(suggestion, str) else ""
        if not segment.strip() or not suggestion:
            continue
        if essay is not None and segment not in essay:
            continue
        if len(suggestion) > max_suggestion_chars:
            continue
        if suggestion.lower() in GENERIC_SUGGESTIONS:
            continue
        category = normalize_category(raw.get("type", raw.get("category")))
        survivors.append((category, segment, suggestion))

    return [
        FeedbackItem(category=category, segment=segment, suggestion=suggestion, ordinal=ordinal)
        for ordinal, (category, segment, suggestion) in enumerate(survivors, start=1)
    ]


def fallback_feedback_items(segments: Sequence[str]) -> list[FeedbackItem]:
    return [
        FeedbackItem(
            category=FALLBACK_CATEGORIES[idx % len(FALLBACK_CATEGORIES)],
            segment=segment,
            suggestion=FALLBACK_SUGGESTIONS[idx % len(FALLBACK_SUGGESTIONS)],
            ordinal=idx + 1,
        )
        for idx, segment in enumerate(segments)
    ]


class FeedbackAssembler:
    def __init__(
        self,
        client: ChatClient,
        variant: PromptVariant = STANDARD,
        max_suggestion_chars: int = DEFAULT_MAX_SUGGESTION_CHARS,
    ) -> None:
        self.client = client
        self.variant = variant
        self.max_suggestion_chars = max_suggestion_chars

    def _ask(self, purpose: str, prompt: str, system_prompt: str, temperature: float, max_tokens: int) -> str | None:
        """Call the LLM; request failures become ``None`` so the caller can fall back."""
        try:
            return self.client.complete(
                prompt,
                system_prompt=system_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                purpose=purpose,
            )
        except LLMRequestError as exc:
            logger.warning(
                "llm call failed; using fallback",
                extra={"stage": purpose, "variant": self.variant.name, "status_code": exc.status_code},
            )
            return None

    def grade_scores(self, essay: EssayText) -> EssayScores:
        scale = self.variant.score_scale
        reply = self._ask(
            "scores",
            prompts.score_prompt(essay.prompt, essay.content, scale),
            prompts.score_system_prompt(scale),
            self.variant.score_temperature,
            1000,
        )
        if reply is None:
            return fallback_scores()

        try:
            return scores_from_payload(extract(reply), scale)
        except (ExtractionError, PayloadValidationError) as exc:
            logger.warning("score reply unusable: %s", exc, extra={"stage": "scores", "variant": self.variant.name})

        recovered = recover_scores(reply)
        try:
            return scores_from_payload(recovered, scale)
        except PayloadValidationError:
            logger.warning("falling back to neutral scores", extra={"stage": "scores", "variant": self.variant.name})
            return fallback_scores()

    def identify_segments(self, essay: EssayText) -> list[str]:
        reply = self._ask(
            "segments",
            prompts.segment_prompt(essay.prompt, essay.content),
            prompts.segment_system_prompt(self.variant),
            self.variant.segment_temperature,
            1500,
        )
        if reply:
            extraction = try_extract(reply, "array")
            if not extraction.ok:
                extraction = try_extract(reply, "object")
            segments = _verbatim(_string_list(extraction.value), essay.content) if extraction.ok else []
            if segments:
                return segments

            quoted = _verbatim(extract_quoted_strings(reply), essay.content)
            if quoted:
                logger.warning("segment reply was not JSON; using quoted strings", extra={"stage": "segments"})
                return quoted

        logger.warning("no segments from llm; using leading sentences", extra={"stage": "segments"})
        return first_sentences(essay.content, self.variant.fallback_sentence_count)

    def generate_comments(self, essay: EssayText, segments: Sequence[str]) -> list[FeedbackItem]:
        if not segments:
            return []
        reply = self._ask(
            "comments",
            prompts.comment_prompt(essay.prompt, list(segments)),
            prompts.COMMENT_SYSTEM_PROMPT,
            self.variant.comment_temperature,
            3000,
        )
        items = validate_feedback_items(_raw_items(reply), self.max_suggestion_chars, essay.content) if reply else []
        if items:
            return items

        logger.warning(
            "no usable feedback items; using fallback comments",
            extra={"stage": "comments", "segments": len(segments)},
        )
        return fallback_feedback_items(_verbatim(segments, essay.content))

    def assemble(self, essay: EssayText, scores: EssayScores | None = None) -> DetailedFeedback:
        """Build the full artifact; pass ``scores`` to reuse stored scores and skip the scoring call."""
        if scores is None:
            scores = self.grade_scores(essay)
        segments = self.identify_segments(essay)
        items = self.generate_comments(essay, segments)
        return DetailedFeedback(
            scores=scores,
            feedback_items=items,
            highlighted_content=highlight(essay.content, items),
        )


def assembler_for(client: ChatClient, variant_name: str, max_suggestion_chars: int) -> FeedbackAssembler:
    return FeedbackAssembler(client, prompts.VARIANTS[variant_name], max_suggestion_chars=max_suggestion_chars)

