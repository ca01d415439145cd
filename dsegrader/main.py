"""FastAPI application entrypoint."""

import logging
import math
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlmodel import Session

from dsegrader import db
from dsegrader.auth import require_api_key
from dsegrader.errors import LLMUnavailableError, RateLimitError, UnsupportedMediaError
from dsegrader.routers.essays import router as essays_router
from dsegrader.routers.evaluate import router as evaluate_router
from dsegrader.routers.ocr import router as ocr_router
from dsegrader.routers.teacher import router as teacher_router
from dsegrader.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 30

app = FastAPI(title=settings.app_name, version="0.1.0", dependencies=[Depends(require_api_key)])

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(essays_router)
app.include_router(evaluate_router)
app.include_router(teacher_router)
app.include_router(ocr_router)


@app.exception_handler(RateLimitError)
async def rate_limited(request: Request, exc: RateLimitError) -> JSONResponse:
    retry_after = DEFAULT_RETRY_AFTER_SECONDS
    if exc.retry_after is not None and exc.retry_after > 0:
        retry_after = math.ceil(exc.retry_after)
    logger.warning("llm rate limited", extra={"path": request.url.path, "retry_after": retry_after})
    return JSONResponse(
        status_code=429,
        content={"detail": exc.message, "retryAfter": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(LLMUnavailableError)
async def llm_unavailable(request: Request, exc: LLMUnavailableError) -> JSONResponse:
    logger.error("llm unavailable", extra={"path": request.url.path})
    return JSONResponse(status_code=503, content={"detail": exc.message})


@app.exception_handler(UnsupportedMediaError)
async def unsupported_media(request: Request, exc: UnsupportedMediaError) -> JSONResponse:
    return JSONResponse(status_code=415, content={"detail": str(exc)})


@app.on_event("startup")
def on_startup() -> None:
    settings.data_path.mkdir(parents=True, exist_ok=True)
    db.create_db_and_tables()


@app.get("/health", tags=["meta"])
def health() -> dict[str, bool]:
    return {"ok": True, "llm_configured": settings.llm_configured}


@app.get("/health/deep", tags=["meta"])
def deep_health() -> dict[str, bool | str]:
    data_dir = settings.data_path

    storage_writable = False
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        probe_path = data_dir / f".health_probe_{uuid4().hex}"
        probe_path.write_text("ok", encoding="utf-8")
        probe_path.unlink(missing_ok=True)
        storage_writable = True
    except OSError:
        storage_writable = False

    db_ok = False
    try:
        with Session(db.engine) as session:
            session.exec(text("SELECT 1"))
        db_ok = True
    except Exception:
        logger.exception("database health probe failed")
        db_ok = False

    return {
        "ok": True,
        "llm_configured": settings.llm_configured,
        "storage_writable": storage_writable,
        "data_dir": str(data_dir),
        "db_ok": db_ok,
    }


@app.options("/{path:path}", include_in_schema=False)
async def preflight(path: str) -> Response:
    del path
    return Response(status_code=204)
