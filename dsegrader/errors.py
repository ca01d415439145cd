"""Error taxonomy for the grading pipeline."""

from __future__ import annotations

from dataclasses import dataclass


class GradingError(Exception):
    """Base class for grading pipeline errors."""


@dataclass
class ExtractionError(GradingError):
    """No JSON value could be recovered from an LLM reply."""

    message: str
    raw: str = ""

    def __str__(self) -> str:
        return self.message


@dataclass
class PayloadValidationError(GradingError):
    """Parsed JSON is missing required fields or carries out-of-domain values."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class LLMRequestError(GradingError):
    status_code: int | None
    body: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class RateLimitError(GradingError):
    """The LLM provider is throttling requests; the caller should retry later."""

    message: str
    retry_after: float | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class LLMUnavailableError(GradingError):
    """The LLM provider is not configured, so no grading can happen at all."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class UnsupportedMediaError(GradingError):
    content_type: str

    def __str__(self) -> str:
        return f"Unsupported file type: {self.content_type}. Upload an image, a PDF or a plain text file."
