"""Essay CRUD, grading and detailed feedback endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from dsegrader import repository
from dsegrader.ai.chat import ChatClient, get_chat_client
from dsegrader.auth import Identity, can_view, get_identity, is_author
from dsegrader.db import get_session
from dsegrader.feedback.assembler import EssayText, assembler_for
from dsegrader.feedback.prompts import REGENERATE, STANDARD
from dsegrader.models import Essay, Feedback
from dsegrader.schemas import DetailedFeedback, EssayCreate, EssayRead, FeedbackSummary
from dsegrader.settings import settings

router = APIRouter(prefix="/essays", tags=["essays"])
logger = logging.getLogger(__name__)


def essay_read(essay: Essay, feedback: Feedback | None = None) -> EssayRead:
    summary = None
    if feedback is not None:
        summary = FeedbackSummary(
            id=feedback.id,
            content_score=feedback.content_score,
            language_score=feedback.language_score,
            organization_score=feedback.organization_score,
            total_score=feedback.total_score,
            updated_at=feedback.updated_at,
        )
    return EssayRead(
        id=essay.id,
        title=essay.title,
        prompt=essay.prompt,
        content=essay.content,
        image_url=essay.image_url,
        author_id=essay.author_id,
        created_at=essay.created_at,
        updated_at=essay.updated_at,
        feedback=summary,
    )


def _visible_essay(session: Session, essay_id: int, identity: Identity) -> Essay:
    essay = repository.get_essay(session, essay_id)
    if essay is None:
        raise HTTPException(status_code=404, detail="Essay not found")
    if not can_view(identity, essay):
        raise HTTPException(status_code=403, detail="You do not have access to this essay")
    return essay


def _essay_text(essay: Essay) -> EssayText:
    return EssayText(content=essay.content, prompt=essay.prompt)


@router.post("", response_model=EssayRead, status_code=status.HTTP_201_CREATED)
def create_essay(
    payload: EssayCreate,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
) -> EssayRead:
    essay = Essay(
        title=payload.title.strip(),
        prompt=payload.prompt.strip(),
        content=payload.content,
        image_url=payload.image_url,
        author_id=identity.user_id,
    )
    session.add(essay)
    session.commit()
    session.refresh(essay)
    logger.info("essay created", extra={"essay_id": essay.id, "author_id": identity.user_id})
    return essay_read(essay)


@router.get("", response_model=list[EssayRead])
def list_essays(
    limit: int = Query(default=20, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
) -> list[EssayRead]:
    essays = repository.list_essays_for_author(session, identity.user_id, limit=limit)
    feedback = repository.feedback_by_essay(session, [essay.id for essay in essays])
    return [essay_read(essay, feedback.get(essay.id)) for essay in essays]


@router.get("/{essay_id}", response_model=EssayRead)
def get_essay(
    essay_id: int,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
) -> EssayRead:
    essay = _visible_essay(session, essay_id, identity)
    return essay_read(essay, repository.get_feedback(session, essay_id))


@router.delete("/{essay_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_essay(
    essay_id: int,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
) -> None:
    essay = _visible_essay(session, essay_id, identity)
    repository.delete_essay(session, essay)
    logger.info("essay deleted", extra={"essay_id": essay_id, "user_id": identity.user_id})


@router.post("/{essay_id}/grade", response_model=DetailedFeedback)
def grade_essay(
    essay_id: int,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
    client: ChatClient = Depends(get_chat_client),
) -> DetailedFeedback:
    essay = _visible_essay(session, essay_id, identity)
    if repository.get_feedback(session, essay_id) is not None:
        raise HTTPException(
            status_code=409,
            detail="This essay has already been graded. Use regenerate-feedback to grade it again.",
        )

    assembler = assembler_for(client, STANDARD.name, settings.max_suggestion_chars)
    detailed = assembler.assemble(_essay_text(essay))
    repository.upsert_feedback(session, essay_id, detailed)
    logger.info(
        "essay graded",
        extra={"essay_id": essay_id, "variant": STANDARD.name, "items": len(detailed.feedback_items)},
    )
    return detailed


@router.get("/{essay_id}/detailed-feedback", response_model=DetailedFeedback)
def detailed_feedback(
    essay_id: int,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
    client: ChatClient = Depends(get_chat_client),
) -> DetailedFeedback:
    essay = _visible_essay(session, essay_id, identity)
    feedback = repository.get_feedback(session, essay_id)

    stored = repository.load_detailed_feedback(feedback)
    if stored is not None:
        return stored

    scores = repository.stored_scores(feedback) if feedback is not None else None
    assembler = assembler_for(client, STANDARD.name, settings.max_suggestion_chars)
    detailed = assembler.assemble(_essay_text(essay), scores=scores)
    repository.upsert_feedback(session, essay_id, detailed)
    logger.info(
        "detailed feedback generated",
        extra={"essay_id": essay_id, "reused_scores": scores is not None, "items": len(detailed.feedback_items)},
    )
    return detailed


@router.post("/{essay_id}/regenerate-feedback", response_model=DetailedFeedback)
def regenerate_feedback(
    essay_id: int,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_session),
    client: ChatClient = Depends(get_chat_client),
) -> DetailedFeedback:
    essay = repository.get_essay(session, essay_id)
    if essay is None:
        raise HTTPException(status_code=404, detail="Essay not found")
    if not is_author(identity, essay):
        raise HTTPException(status_code=403, detail="Only the author can regenerate feedback")

    assembler = assembler_for(client, REGENERATE.name, settings.max_suggestion_chars)
    detailed = assembler.assemble(_essay_text(essay))
    repository.upsert_feedback(session, essay_id, detailed)
    logger.info(
        "feedback regenerated",
        extra={"essay_id": essay_id, "variant": REGENERATE.name, "items": len(detailed.feedback_items)},
    )
    return detailed
