"""FastAPI app: routers, exception handlers and service endpoints.

Every error leaves the API as ``{"error": <message>, "code": <CODE>}``.
"""
from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .db import create_all, engine
from .errors import UniLinkError
from .logging_config import setup_logging
from .parsers import ParseError
from .routes import (
    connections,
    credentials,
    curriculum_feedback,
    events,
    exam_results,
    jobs,
    messaging,
    newsletters,
    notifications,
    posts,
    profiles,
    recommendations,
    scholarships,
    universities,
)
from .schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} {settings.version} starting ({settings.environment.value})")
    if settings.db.auto_create:
        await create_all()
        logger.info("Database tables ensured")

    yield

    # Shutdown
    logger.info("Application shutting down")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Multi-tenant alumni networking API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, code=code).model_dump())


def _field_code(name: str) -> str:
    """``maxAttendees`` / ``max_attendees`` -> ``MAX_ATTENDEES``."""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).upper()


def validation_code(err: dict) -> str:
    """Error code for one pydantic error entry."""
    code = (err.get("ctx") or {}).get("code")
    if code:
        return code

    fields = [part for part in err.get("loc", ()) if isinstance(part, str)]
    if len(fields) < 2:
        return "VALIDATION_ERROR"
    field = _field_code(fields[-1])
    if err.get("type") == "missing":
        return f"MISSING_{field}"
    return f"INVALID_{field}"


# Exception handlers
@app.exception_handler(UniLinkError)
async def unilink_error_handler(request: Request, exc: UniLinkError):
    """Handle errors raised by services and dependencies."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    return _error(exc.status_code, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report the first invalid field as a 400 with its code."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    code = validation_code(first)
    message = first.get("msg", "Invalid request")
    logger.info(f"{request.method} {request.url.path} -> 400 {code}")
    return _error(status.HTTP_400_BAD_REQUEST, message, code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error(exc.status_code, detail, f"HTTP_{exc.status_code}")


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    """Handle uploaded file parsing errors."""
    logger.error(f"Parse error: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, str(exc), "PARSE_ERROR")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR")


app.include_router(universities.router)
app.include_router(profiles.router)
app.include_router(events.router)
app.include_router(messaging.conversations_router)
app.include_router(messaging.messages_router)
app.include_router(posts.router)
app.include_router(notifications.router)
app.include_router(newsletters.router)
app.include_router(exam_results.router)
app.include_router(connections.router)
app.include_router(jobs.router)
app.include_router(recommendations.router)
app.include_router(credentials.router)
app.include_router(scholarships.router)
app.include_router(curriculum_feedback.router)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=settings.version)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "universities": "/api/universities",
            "profiles": "/api/profiles",
            "events": "/api/events",
            "conversations": "/api/conversations",
            "messages": "/api/messages",
            "posts": "/api/posts",
            "notifications": "/api/notifications",
            "newsletters": "/api/newsletters",
            "exam_results": "/api/exam-results",
            "connections": "/api/connections",
            "jobs": "/api/jobs",
            "recommendations": "/api/recommendations",
            "credentials": "/api/credentials",
            "scholarships": "/api/scholarships",
            "curriculum_feedback": "/api/curriculum-feedback",
            "docs": "/docs",
        },
    }
