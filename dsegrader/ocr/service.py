"""Document-to-text extraction across uploaded file types."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from dsegrader.ai.chat import ChatClient
from dsegrader.errors import GradingError, UnsupportedMediaError
from dsegrader.feedback.prompts import OCR_CLEANUP_PROMPT
from dsegrader.ocr.base import NO_TEXT_DETECTED, OCRProvider
from dsegrader.ocr.images import prepare_image
from dsegrader.ocr.pages import PDFConverter, Pdf2ImageConverter
from dsegrader.ocr.stub import StubOCRProvider
from dsegrader.ocr.vision import VisionOCRProvider

logger = logging.getLogger(__name__)


@dataclass
class ExtractedDocument:
    text: str
    confidence: float
    pages: int


def get_ocr_provider(name: str, client: ChatClient | None = None) -> OCRProvider:
    normalized = name.strip().lower()
    if normalized == "stub":
        return StubOCRProvider()
    if normalized == "vision":
        if client is None:
            raise ValueError("The vision OCR provider needs a chat client")
        return VisionOCRProvider(client)
    raise ValueError(f"Unknown OCR provider: {name}")


def _base_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def extract_document(
    data: bytes,
    content_type: str | None,
    provider: OCRProvider,
    language_hints: Sequence[str] = ("en",),
    pdf_converter: PDFConverter | None = None,
) -> ExtractedDocument:
    """Turn an uploaded file into text.

    Plain text is decoded directly, images go to ``provider`` after
    preparation, and PDFs are rendered page by page first. Raises
    :class:`UnsupportedMediaError` for anything else and ``RuntimeError``
    when PDF rendering is unavailable.
    """
    mime_type = _base_type(content_type)

    if mime_type == "text/plain":
        text = data.decode("utf-8", errors="replace").strip()
        return ExtractedDocument(text=text or NO_TEXT_DETECTED, confidence=1.0, pages=1)

    if mime_type == "application/pdf":
        converter = pdf_converter or Pdf2ImageConverter()
        images = [(page, "image/png") for page in converter.convert(data)]
    elif mime_type.startswith("image/"):
        images = [(data, mime_type)]
    else:
        raise UnsupportedMediaError(content_type=content_type or "unknown")

    texts: list[str] = []
    confidences: list[float] = []
    for page_bytes, page_type in images:
        prepared = prepare_image(page_bytes, page_type)
        result = provider.extract_text(prepared.image_bytes, prepared.mime_type, language_hints)
        confidences.append(result.confidence)
        if result.text.strip():
            texts.append(result.text.strip())

    logger.info(
        "document extracted",
        extra={"provider": provider.name, "mime_type": mime_type, "pages": len(images), "chars": sum(map(len, texts))},
    )
    text = "\n\n".join(texts)
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return ExtractedDocument(text=text or NO_TEXT_DETECTED, confidence=confidence, pages=len(images))


def clean_ocr_text(client: ChatClient, text: str) -> str:
    """Ask the LLM to strip OCR noise; the input is returned unchanged on any failure."""
    if not text.strip() or text == NO_TEXT_DETECTED:
        return text
    try:
        cleaned = client.complete(f"{OCR_CLEANUP_PROMPT}\n\n{text}", temperature=0.0, purpose="ocr_cleanup")
    except GradingError as exc:
        logger.warning("ocr clean-up failed; keeping raw text: %s", exc)
        return text
    return cleaned.strip() or text
