"""Teacher-only views across every student's essays."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from dsegrader import repository
from dsegrader.auth import Identity, get_identity
from dsegrader.db import get_session
from dsegrader.routers.essays import essay_read
from dsegrader.schemas import EssayRead

router = APIRouter(prefix="/teacher", tags=["teacher"])


def require_teacher(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_teacher:
        raise HTTPException(status_code=403, detail="Teacher access required")
    return identity


@router.get("/essays", response_model=list[EssayRead])
def list_all_essays(
    limit: int = Query(default=100, ge=1, le=500),
    identity: Identity = Depends(require_teacher),
    session: Session = Depends(get_session),
) -> list[EssayRead]:
    essays = repository.list_all_essays(session, limit=limit)
    feedback = repository.feedback_by_essay(session, [essay.id for essay in essays])
    return [essay_read(essay, feedback.get(essay.id)) for essay in essays]
