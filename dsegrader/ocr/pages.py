"""PDF page rendering for OCR."""

from __future__ import annotations

import io


class PDFConverter:
    """Interface for PDF-to-image conversion."""

    def convert(self, data: bytes) -> list[bytes]:
        raise NotImplementedError


class Pdf2ImageConverter(PDFConverter):
    """PDF converter using pdf2image when available."""

    def __init__(self) -> None:
        try:
            from pdf2image import convert_from_bytes  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "pdf2image is not installed. Install pdf2image and poppler for PDF support."
            ) from exc
        self._convert_from_bytes = convert_from_bytes

    def convert(self, data: bytes) -> list[bytes]:
        pages: list[bytes] = []
        for page in self._convert_from_bytes(data):
            output = io.BytesIO()
            page.convert("RGB").save(output, format="PNG")
            pages.append(output.getvalue())
        return pages
