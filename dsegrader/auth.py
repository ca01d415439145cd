"""Identity and API key dependencies."""

from __future__ import annotations

import os
from dataclasses import dataclass

import jwt
from fastapi import Header, HTTPException, Request

from dsegrader.models import Essay
from dsegrader.settings import settings

TEACHER_ROLE = "TEACHER"
STUDENT_ROLE = "STUDENT"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = STUDENT_ROLE

    @property
    def is_teacher(self) -> bool:
        return self.role == TEACHER_ROLE


class InvalidTokenError(Exception):
    pass


def issue_token(user_id: str, role: str = STUDENT_ROLE, secret: str | None = None) -> str:
    return jwt.encode({"sub": user_id, "role": role}, secret or settings.jwt_secret, algorithm="HS256")


def verify_identity(token: str, secret: str | None = None) -> Identity:
    try:
        payload = jwt.decode(token, secret or settings.jwt_secret, algorithms=["HS256"])
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError(str(exc)) from exc

    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise InvalidTokenError("Token carries no user id")
    return Identity(user_id=str(user_id), role=str(payload.get("role") or STUDENT_ROLE).upper())


def get_identity(authorization: str | None = Header(default=None)) -> Identity:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")
    token = authorization.split(" ", 1)[1].strip()
    try:
        return verify_identity(token)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail="Invalid authentication token") from exc


def can_view(identity: Identity, essay: Essay) -> bool:
    return essay.author_id == identity.user_id or identity.is_teacher


def is_author(identity: Identity, essay: Essay) -> bool:
    return essay.author_id == identity.user_id


_PUBLIC_PATHS = {
    "/",
    "/health",
    "/health/deep",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/favicon.ico",
}


def require_api_key(request: Request, x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if request.method == "OPTIONS":
        return

    if request.url.path in _PUBLIC_PATHS:
        return

    expected = os.getenv("BACKEND_API_KEY", "").strip()
    if not expected:
        return

    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Unauthorized")
