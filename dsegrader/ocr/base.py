"""OCR provider interfaces."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

NO_TEXT_DETECTED = "No text detected"


@dataclass
class OCRResult:
    text: str
    confidence: float
    raw: dict = field(default_factory=dict)


class OCRProvider(Protocol):
    """OCR provider protocol."""

    name: str

    def extract_text(self, data: bytes, mime_type: str, language_hints: Sequence[str] = ("en",)) -> OCRResult:
        """Extract text from one image."""
