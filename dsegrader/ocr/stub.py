"""Stub OCR provider for local/offline testing."""

from collections.abc import Sequence

from dsegrader.ocr.base import OCRProvider, OCRResult


class StubOCRProvider(OCRProvider):
    name = "stub"

    def extract_text(self, data: bytes, mime_type: str, language_hints: Sequence[str] = ("en",)) -> OCRResult:
        return OCRResult(
            text=f"[stub-ocr] Extracted {len(data)} bytes of {mime_type}",
            confidence=0.5,
            raw={"source": "stub", "mime_type": mime_type, "language_hints": list(language_hints)},
        )
