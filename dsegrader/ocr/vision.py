"""OCR through the chat model's vision input."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from dsegrader.ai.chat import ChatClient
from dsegrader.ocr.base import OCRProvider, OCRResult

logger = logging.getLogger(__name__)

VISION_OCR_PROMPT = (
    "Transcribe all handwritten or printed text in this image exactly as written. "
    "Keep the original line breaks and paragraphing. Do not correct spelling or grammar. "
    "Return only the transcribed text with no commentary."
)


class VisionOCRProvider(OCRProvider):
    name = "vision"

    def __init__(self, client: ChatClient) -> None:
        self.client = client

    def extract_text(self, data: bytes, mime_type: str, language_hints: Sequence[str] = ("en",)) -> OCRResult:
        prompt = VISION_OCR_PROMPT
        if language_hints:
            prompt = f"{prompt} Expected languages: {', '.join(language_hints)}."
        text = self.client.read_image(prompt, data, mime_type, purpose="ocr")
        logger.info("vision ocr page read", extra={"mime_type": mime_type, "chars": len(text)})
        return OCRResult(text=text, confidence=0.9 if text else 0.0, raw={"source": "vision", "mime_type": mime_type})
