"""One-off evaluation of an essay that is not stored."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from dsegrader.ai.chat import ChatClient, get_chat_client
from dsegrader.auth import Identity, get_identity
from dsegrader.feedback.assembler import EssayText, assembler_for
from dsegrader.feedback.prompts import STANDARD
from dsegrader.schemas import DetailedFeedback, EvaluateRequest
from dsegrader.settings import settings

router = APIRouter(tags=["evaluate"])
logger = logging.getLogger(__name__)


@router.post("/evaluate", response_model=DetailedFeedback)
def evaluate(
    payload: EvaluateRequest,
    identity: Identity = Depends(get_identity),
    client: ChatClient = Depends(get_chat_client),
) -> DetailedFeedback:
    assembler = assembler_for(client, STANDARD.name, settings.max_suggestion_chars)
    detailed = assembler.assemble(EssayText(content=payload.content, prompt=payload.question))
    logger.info("ad hoc evaluation", extra={"user_id": identity.user_id, "items": len(detailed.feedback_items)})
    return detailed
