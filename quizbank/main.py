"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from quizbank.config import settings
from quizbank.api import (
    health_router,
    quizzes_router,
    attempts_router,
)
from quizbank.core.errors import QuizError
from quizbank.schemas.common import ErrorResponse

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 quizbank attempt service starting…")
    yield
    logger.info("✅ quizbank attempt service shut down")


app = FastAPI(
    title="Quizbank Attempts API",
    description="Quiz attempt lifecycle and scoring",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ─────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# ── Error envelope ────────────────────────────────────────────────────────────


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError) -> JSONResponse:
    logger.info(
        "%s %s → %s %s: %s",
        request.method, request.url.path, exc.status_code, exc.error_code, exc.message,
    )
    body = ErrorResponse(error_code=exc.error_code, message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())

# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(quizzes_router, prefix="/api/quizzes", tags=["Quizzes"])
app.include_router(attempts_router, prefix="/api/attempts", tags=["Attempts"])


@app.get("/")
async def root():
    return {
        "name": "Quizbank Attempts API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
