"""Persistence helpers for essays and their single feedback record."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError
from sqlmodel import Session, delete, select

from dsegrader.models import Essay, Feedback, utcnow
from dsegrader.schemas import DetailedFeedback, EssayScores

logger = logging.getLogger(__name__)


def get_essay(session: Session, essay_id: int) -> Essay | None:
    return session.get(Essay, essay_id)


def get_feedback(session: Session, essay_id: int) -> Feedback | None:
    return session.exec(select(Feedback).where(Feedback.essay_id == essay_id)).first()


def list_essays_for_author(session: Session, author_id: str, limit: int = 20) -> list[Essay]:
    statement = select(Essay).where(Essay.author_id == author_id).order_by(Essay.created_at.desc()).limit(limit)
    return list(session.exec(statement).all())


def list_all_essays(session: Session, limit: int = 100) -> list[Essay]:
    return list(session.exec(select(Essay).order_by(Essay.created_at.desc()).limit(limit)).all())


def feedback_by_essay(session: Session, essay_ids: list[int]) -> dict[int, Feedback]:
    if not essay_ids:
        return {}
    rows = session.exec(select(Feedback).where(Feedback.essay_id.in_(essay_ids))).all()
    return {row.essay_id: row for row in rows}


def stored_scores(feedback: Feedback) -> EssayScores:
    return EssayScores(
        content=feedback.content_score,
        language=feedback.language_score,
        organization=feedback.organization_score,
        overall=feedback.total_score,
    )


def load_detailed_feedback(feedback: Feedback | None) -> DetailedFeedback | None:
    """Parse the stored artifact; ``None`` when absent or not a complete artifact."""
    if feedback is None or not feedback.feedback_json:
        return None
    try:
        payload = json.loads(feedback.feedback_json)
    except json.JSONDecodeError:
        logger.warning("stored feedback is not JSON; will regenerate", extra={"essay_id": feedback.essay_id})
        return None
    if not isinstance(payload, dict) or "feedbackItems" not in payload or "highlightedContent" not in payload:
        return None
    try:
        return DetailedFeedback.model_validate(payload)
    except ValidationError:
        logger.warning("stored feedback has an unexpected shape; will regenerate", extra={"essay_id": feedback.essay_id})
        return None


def upsert_feedback(session: Session, essay_id: int, detailed: DetailedFeedback) -> Feedback:
    """Create or wholesale-replace the one feedback record of an essay."""
    row = get_feedback(session, essay_id)
    if row is None:
        row = Feedback(
            essay_id=essay_id,
            content_score=0,
            language_score=0,
            organization_score=0,
            total_score=0,
            feedback_json="",
        )
    row.content_score = detailed.scores.content
    row.language_score = detailed.scores.language
    row.organization_score = detailed.scores.organization
    row.total_score = detailed.scores.overall
    row.feedback_json = detailed.model_dump_json(by_alias=True)
    row.updated_at = utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def delete_essay(session: Session, essay: Essay) -> None:
    session.exec(delete(Feedback).where(Feedback.essay_id == essay.id))
    session.delete(essay)
    session.commit()
