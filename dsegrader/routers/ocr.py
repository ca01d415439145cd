"""Upload an essay scan and get its text back."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from PIL import UnidentifiedImageError

from dsegrader.ai.chat import ChatClient, get_chat_client
from dsegrader.auth import Identity, get_identity
from dsegrader.ocr.service import clean_ocr_text, extract_document, get_ocr_provider
from dsegrader.schemas import OCRExtractResponse
from dsegrader.settings import settings

router = APIRouter(prefix="/ocr", tags=["ocr"])
logger = logging.getLogger(__name__)


@router.post("/extract", response_model=OCRExtractResponse)
def extract(
    file: UploadFile = File(...),
    languages: str = Form(default="en"),
    identity: Identity = Depends(get_identity),
    client: ChatClient = Depends(get_chat_client),
) -> OCRExtractResponse:
    data = file.file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(data) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"File exceeds the {settings.max_upload_mb} MB upload limit")

    provider = get_ocr_provider(settings.ocr_provider, client)
    hints = [hint.strip() for hint in languages.split(",") if hint.strip()]
    try:
        document = extract_document(data, file.content_type, provider, hints or ["en"])
    except UnidentifiedImageError as exc:
        raise HTTPException(status_code=400, detail="Could not read the uploaded image") from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=400, detail="PDF rendering is not available here. Upload images instead.") from exc

    text = document.text
    if settings.ocr_clean_with_llm:
        text = clean_ocr_text(client, text)

    logger.info(
        "ocr extract complete",
        extra={"user_id": identity.user_id, "provider": provider.name, "pages": document.pages, "filename": file.filename},
    )
    return OCRExtractResponse(text=text, provider=provider.name, confidence=document.confidence, pages=document.pages)
