"""HKDSE grading scales and score normalization.

Two scales meet in this codebase: the DSE raw scale (0-7 per criterion,
0-21 in total) and the percentage scale (0-100 per criterion and overall).
Percentages are the canonical stored form; raw scores are converted exactly
once, where an LLM reply is turned into :class:`EssayScores`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from enum import Enum

from dsegrader.errors import PayloadValidationError
from dsegrader.schemas import EssayScores

RAW_CRITERION_MAX = 7
RAW_TOTAL_MAX = 21
PERCENTAGE_MAX = 100

FALLBACK_PERCENTAGE = 70

SCORE_AXES = ("content", "language", "organization")


class ScoreScale(str, Enum):
    RAW = "raw"
    PERCENTAGE = "percentage"

    @property
    def criterion_max(self) -> int:
        return RAW_CRITERION_MAX if self is ScoreScale.RAW else PERCENTAGE_MAX

    @property
    def overall_max(self) -> int:
        return RAW_TOTAL_MAX if self is ScoreScale.RAW else PERCENTAGE_MAX


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float, low: int, high: int) -> int:
    """Round to the nearest integer, then clamp into ``[low, high]``."""
    return max(low, min(high, round_half_up(value)))


def to_percentage(raw: float, max_raw: int = RAW_CRITERION_MAX) -> int:
    return clamp_score(raw * PERCENTAGE_MAX / max_raw, 0, PERCENTAGE_MAX)


def to_raw(percentage: float, max_raw: int = RAW_CRITERION_MAX) -> int:
    return clamp_score(percentage * max_raw / PERCENTAGE_MAX, 0, max_raw)


def combine_overall(content: int, language: int, organization: int, scale: ScoreScale) -> int:
    if scale is ScoreScale.RAW:
        return clamp_score(content + language + organization, 0, RAW_TOTAL_MAX)
    return clamp_score((content + language + organization) / 3, 0, PERCENTAGE_MAX)


def _coerce_number(name: str, value: object) -> float:
    if isinstance(value, bool):
        raise PayloadValidationError(f"Score '{name}' is not numeric: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as exc:
            raise PayloadValidationError(f"Score '{name}' is not numeric: {value!r}") from exc
    else:
        raise PayloadValidationError(f"Score '{name}' is missing or not numeric")
    if math.isnan(number) or math.isinf(number):
        raise PayloadValidationError(f"Score '{name}' is not finite")
    return number


def normalize_scores(values: Mapping[str, object], scale: ScoreScale) -> EssayScores:
    """Clamp each axis in its source scale and convert once to percentages.

    ``overall`` is always derived from the three criteria; whatever overall
    figure the source supplied is ignored.
    """
    numbers = {axis: _coerce_number(axis, values.get(axis)) for axis in SCORE_AXES}
    if scale is ScoreScale.RAW:
        # Half-band levels like 5.5 are only rounded after conversion.
        percentages = {axis: to_percentage(max(0.0, min(float(RAW_CRITERION_MAX), number))) for axis, number in numbers.items()}
    else:
        percentages = {axis: clamp_score(number, 0, PERCENTAGE_MAX) for axis, number in numbers.items()}
    return EssayScores(
        overall=combine_overall(
            percentages["content"], percentages["language"], percentages["organization"], ScoreScale.PERCENTAGE
        ),
        **percentages,
    )


def scores_from_payload(payload: object, scale: ScoreScale) -> EssayScores:
    """Accept the score shapes LLMs actually return.

    Supported: flat ``{content, language, organization, overall}``, the same
    nested under ``"scores"``, and the legacy single-call shape with
    ``relevance_score`` / ``clarity_score`` / ``coherence_score``.
    """
    if not isinstance(payload, Mapping):
        raise PayloadValidationError("Score payload is not a JSON object")

    nested = payload.get("scores")
    if isinstance(nested, Mapping):
        payload = nested

    if all(axis in payload for axis in SCORE_AXES):
        return normalize_scores(payload, scale)

    if "overall_score" in payload:
        legacy = {
            "content": payload.get("relevance_score"),
            "language": payload.get("clarity_score"),
            "organization": payload.get("coherence_score"),
        }
        return normalize_scores(legacy, scale)

    missing = [axis for axis in SCORE_AXES if axis not in payload]
    raise PayloadValidationError(f"Score payload missing fields: {missing}")


def fallback_scores() -> EssayScores:
    return EssayScores(
        content=FALLBACK_PERCENTAGE,
        language=FALLBACK_PERCENTAGE,
        organization=FALLBACK_PERCENTAGE,
        overall=FALLBACK_PERCENTAGE,
    )
