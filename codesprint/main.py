"""FastAPI application — entry point, middleware, and health endpoint.

Creates the sprint engine API with:
- API versioning via router prefix (/api/v1/)
- CORS middleware (origins from settings)
- Request logging middleware (raw ASGI — no response body buffering)
- Global exception handlers (engine errors, HTTPException, validation,
  catch-all)
- Health endpoint

Run with: uvicorn codesprint.main:app --reload

Tier 3 orchestration module: imports from config, deps, schemas, errors.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from codesprint.ai.providers.base import AIProvider
from codesprint.config import Settings, get_settings
from codesprint.errors import (
    InvalidInput,
    NormalizationError,
    NotFound,
    PartialSynthesisFailure,
    ProviderError,
    SprintEngineError,
)
from codesprint.models import ModelConfig
from codesprint.schemas import ApiError, ApiResponse

logger = logging.getLogger("codesprint")


# ---------------------------------------------------------------------------
# Request logging middleware (raw ASGI)
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware:
    """Logs method, path, status code, and duration for every request.

    Does NOT log request/response bodies, query params, auth headers, or
    client IPs.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "?")
        path = scope.get("path", "?")
        start = time.monotonic()
        status_code = 0

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, receive, logging_send)
        finally:
            duration_ms = (time.monotonic() - start) * 1000
            logger.info("%s %s %d %.1fms", method, path, status_code, duration_ms)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _envelope(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(ok=False, error=ApiError(code=code, message=message)).model_dump(),
    )


def _engine_error_response(request: Request, exc: SprintEngineError) -> JSONResponse:
    """Maps the engine's error taxonomy onto HTTP statuses and codes.

    Provider and normalizer failures only reach this point from track
    synthesis; sprint synthesis degrades instead of failing.
    """
    if isinstance(exc, InvalidInput):
        return _envelope(400, exc.code, exc.message)
    if isinstance(exc, NotFound):
        return _envelope(404, exc.code, exc.message)
    if isinstance(exc, PartialSynthesisFailure):
        logger.warning(
            "Partial synthesis on %s: track %s kept as draft (%d lessons)",
            request.url.path,
            exc.track_id,
            exc.lessons_committed,
        )
        return _envelope(
            502,
            "PARTIAL_SYNTHESIS",
            f"Track {exc.track_id} was only partly written and needs review.",
        )
    if isinstance(exc, (ProviderError, NormalizationError)):
        logger.warning("Synthesis failed on %s: %s", request.url.path, exc.code)
        return _envelope(502, "SYNTHESIS_FAILED", "Content synthesis failed. Try again later.")
    return _unhandled_exception_response(request, exc)


def _http_exception_response(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wraps HTTPException in ApiResponse envelope.

    If the detail is already an ApiResponse dict (from deps.py auth),
    returns it directly. Otherwise wraps in a generic error.
    """
    if isinstance(exc.detail, dict) and "ok" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return _envelope(exc.status_code, "HTTP_ERROR", str(exc.detail))


def _validation_error_response(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Wraps Pydantic validation errors in ApiResponse envelope."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = " -> ".join(str(part) for part in first.get("loc", []))
        msg = first.get("msg", "Validation error")
        detail = f"{loc}: {msg}" if loc else msg
    else:
        detail = "Request validation failed."
    return _envelope(422, "VALIDATION_ERROR", detail)


def _unhandled_exception_response(request: Request, exc: Exception) -> JSONResponse:
    """Catches all unhandled exceptions — never leaks internals to client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "INTERNAL_ERROR", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def _init_services(settings: Settings) -> None:
    """Builds the database, progression engine and orchestrator singletons.

    The orchestrator is always built. A provider that cannot be constructed
    is replaced by an UnavailableProvider, so sprints are served degraded
    and track synthesis answers 502 SYNTHESIS_FAILED instead of 503.
    """
    from codesprint.ai.generation import GenerationClient
    from codesprint.api import deps
    from codesprint.content.store import ContentStore
    from codesprint.models import resolve_tier
    from codesprint.progression.engine import ProgressionEngine
    from codesprint.sprint.orchestrator import SprintOrchestrator

    if settings.database_url:
        from codesprint.hooks.sqlstore import SqlStore

        deps._database = SqlStore(settings.database_url)

    progression = ProgressionEngine(deps._database)
    deps._progression = progression

    sprint_config = resolve_tier(settings.sprint_tier, settings.ai_backend)
    track_config = resolve_tier(settings.track_tier, settings.ai_backend)
    _check_api_keys(settings, {sprint_config.provider, track_config.provider})

    sprint_provider = _build_provider(sprint_config, settings, "sprint")
    track_provider = _build_provider(track_config, settings, "track")

    timeout = settings.generation_timeout_seconds
    deps._orchestrator = SprintOrchestrator(
        ContentStore(deps._database),
        progression,
        GenerationClient(sprint_provider, sprint_config, timeout_seconds=timeout),
        GenerationClient(track_provider, track_config, timeout_seconds=timeout),
        default_topic=settings.default_sprint_topic,
        card_count=settings.sprint_card_count,
        lesson_count=settings.track_lesson_count,
    )
    logger.info(
        "Engine initialized: backend=%s, sprint_model=%s, track_model=%s, database=%s",
        settings.ai_backend,
        sprint_config.model_id,
        track_config.model_id,
        type(deps._database).__name__,
    )


def _build_provider(model_config: ModelConfig, settings: Settings, purpose: str) -> AIProvider:
    """Creates the tier's provider, or an offline stand-in if that fails."""
    from codesprint.ai.providers.offline import UnavailableProvider
    from codesprint.api.deps import create_provider

    try:
        return create_provider(model_config, settings, purpose)
    except Exception as exc:
        logger.warning(
            "Failed to create %s provider '%s' for backend '%s'. "
            "Generation calls will fail and sprints will be served in degraded mode.",
            purpose,
            model_config.provider,
            settings.ai_backend,
            exc_info=True,
        )
        return UnavailableProvider(str(exc))


def _check_api_keys(settings: Settings, providers: set[str]) -> None:
    """Warns about providers in use whose API key is not configured."""
    from codesprint.api.deps import api_key_for

    env_vars = {"gemini": "GOOGLE_API_KEY", "anthropic": "ANTHROPIC_API_KEY"}
    for provider_name in sorted(providers):
        if provider_name in env_vars and not api_key_for(provider_name, settings):
            logger.warning(
                "Missing %s for provider '%s'. Generation calls will fail and "
                "sprints will be served in degraded mode.",
                env_vars[provider_name],
                provider_name,
            )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Creates SQL tables on startup and disposes the engine on shutdown."""
    from codesprint.api import deps
    from codesprint.hooks.sqlstore import SqlStore

    database = deps._database
    if isinstance(database, SqlStore):
        await database.create_all()
    yield
    if isinstance(database, SqlStore):
        await database.dispose()


# ---------------------------------------------------------------------------
# App creation
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Creates and configures the FastAPI application."""
    settings = get_settings()

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    application = FastAPI(
        title="CodeSprint",
        description="Adaptive sprint engine for gamified technical learning",
        version="0.1.0",
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestLoggingMiddleware)

    # -- Exception handlers --
    application.add_exception_handler(SprintEngineError, _engine_error_response)
    application.add_exception_handler(StarletteHTTPException, _http_exception_response)
    application.add_exception_handler(RequestValidationError, _validation_error_response)
    application.add_exception_handler(Exception, _unhandled_exception_response)

    _register_routes(application)
    _init_services(settings)

    return application


def _register_routes(application: FastAPI) -> None:
    """Registers all API routers on the application."""
    from fastapi import APIRouter

    v1 = APIRouter(prefix="/api/v1")

    @v1.get("/health")
    async def health() -> dict[str, Any]:
        return ApiResponse(ok=True, data={"status": "healthy"}).model_dump()

    from codesprint.api.sprint import router as sprint_router

    v1.include_router(sprint_router, tags=["sprint"])

    from codesprint.api.tracks import router as tracks_router

    v1.include_router(tracks_router, prefix="/tracks", tags=["tracks"])

    from codesprint.api.lessons import router as lessons_router

    v1.include_router(lessons_router, prefix="/lessons", tags=["lessons"])

    application.include_router(v1)


app = create_app()
