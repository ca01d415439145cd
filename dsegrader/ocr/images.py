"""Image preparation for vision OCR payloads."""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageOps

MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_WIDTH = 1500
MAX_HEIGHT = 2000
START_JPEG_QUALITY = 80
MIN_JPEG_QUALITY = 10
PASSTHROUGH_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


@dataclass
class PreparedImage:
    """Image blob ready for a vision payload."""

    image_bytes: bytes
    mime_type: str
    width: int
    height: int
    original_size_bytes: int
    final_size_bytes: int


def prepare_image(
    data: bytes,
    mime_type: str,
    max_bytes: int = MAX_IMAGE_BYTES,
    max_size: tuple[int, int] = (MAX_WIDTH, MAX_HEIGHT),
) -> PreparedImage:
    """Pass small images through; otherwise fit them in ``max_size`` and re-encode as JPEG until under ``max_bytes``."""

    with Image.open(io.BytesIO(data)) as source:
        fits = source.width <= max_size[0] and source.height <= max_size[1]
        if fits and len(data) <= max_bytes and mime_type in PASSTHROUGH_TYPES:
            return PreparedImage(
                image_bytes=data,
                mime_type=mime_type,
                width=source.width,
                height=source.height,
                original_size_bytes=len(data),
                final_size_bytes=len(data),
            )

        image = ImageOps.exif_transpose(source).convert("RGB")
        image.thumbnail(max_size, Image.Resampling.LANCZOS)

    quality = START_JPEG_QUALITY
    while True:
        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality, optimize=True)
        payload = output.getvalue()
        if len(payload) <= max_bytes or quality <= MIN_JPEG_QUALITY:
            break
        quality -= 10

    return PreparedImage(
        image_bytes=payload,
        mime_type="image/jpeg",
        width=image.width,
        height=image.height,
        original_size_bytes=len(data),
        final_size_bytes=len(payload),
    )
