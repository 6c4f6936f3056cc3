"""Shared FastAPI dependencies — auth, database, engine injection.

Module-level singletons for each service. Route handlers access them via
FastAPI's Depends() system — never by importing stubs directly. When the
team swaps a stub for a real implementation, they change the class here and
every downstream handler picks it up automatically.

The database, progression engine and orchestrator singletons are set by
``_init_services()`` in main.py at startup.

TEAM: To wire your real auth, replace the stub class on the right side of
the singleton assignment below. Set DATABASE_URL to switch from the
in-memory store to SqlStore.

Usage:
    from codesprint.api.deps import get_current_user, get_orchestrator

    @router.post("/something")
    async def do_thing(
        user: User = Depends(get_current_user),
        orchestrator: SprintOrchestrator = Depends(get_orchestrator),
    ): ...
"""

import logging

from fastapi import Depends, Header, HTTPException

from codesprint.ai.providers.base import AIProvider
from codesprint.config import Settings
from codesprint.hooks.auth import FakeAuthService
from codesprint.hooks.database import InMemoryStore
from codesprint.hooks.interfaces import AuthService, DatabaseAdapter
from codesprint.models import ModelConfig
from codesprint.progression.engine import ProgressionEngine
from codesprint.schemas import ApiError, ApiResponse, User
from codesprint.sprint.orchestrator import SprintOrchestrator

logger = logging.getLogger("codesprint")

# ---------------------------------------------------------------------------
# Service singletons (the swap point)
# ---------------------------------------------------------------------------

# TEAM: Replace with your real implementations here.
_auth_service: AuthService = FakeAuthService()
_database: DatabaseAdapter = InMemoryStore()

# Engine singletons, set by _init_services() in main.py at startup
_progression: ProgressionEngine | None = None
_orchestrator: SprintOrchestrator | None = None


def _unavailable(what: str) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail=ApiResponse(
            ok=False,
            error=ApiError(
                code="SERVICE_UNAVAILABLE",
                message=f"{what} is not yet available. Server is starting up.",
            ),
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Dependency providers
# ---------------------------------------------------------------------------


def get_auth_service() -> AuthService:
    """Returns the auth service singleton."""
    return _auth_service


def get_database() -> DatabaseAdapter:
    """Returns the database adapter singleton."""
    return _database


def get_progression() -> ProgressionEngine:
    """Returns the progression engine singleton (503 before startup)."""
    if _progression is None:
        raise _unavailable("Progression engine")
    return _progression


def get_orchestrator() -> SprintOrchestrator:
    """Returns the sprint orchestrator singleton (503 before startup)."""
    if _orchestrator is None:
        raise _unavailable("Sprint orchestrator")
    return _orchestrator


# ---------------------------------------------------------------------------
# AI provider factory
# ---------------------------------------------------------------------------


def create_provider(
    model_config: ModelConfig,
    settings: Settings,
    purpose: str = "sprint",
) -> AIProvider:
    """Routes a ModelConfig to the correct concrete provider instance.

    Args:
        model_config: The resolved tier configuration.
        settings: Application settings with API keys.
        purpose: "sprint" or "track"; picks the canned payload for mock.

    Raises:
        ValueError: If the provider name is not recognized.
    """
    # Local imports to avoid pulling SDK dependencies at module load time.
    if model_config.provider == "gemini":
        from codesprint.ai.providers.gemini import GeminiProvider

        return GeminiProvider(api_key=settings.google_api_key)

    if model_config.provider == "anthropic":
        from codesprint.ai.providers.anthropic import AnthropicProvider

        return AnthropicProvider(api_key=settings.anthropic_api_key)

    if model_config.provider == "mock":
        from codesprint.ai.providers.mock import (
            DEMO_SPRINT_RESPONSE,
            DEMO_TRACK_RESPONSE,
            MockProvider,
        )

        canned = DEMO_TRACK_RESPONSE if purpose == "track" else DEMO_SPRINT_RESPONSE
        return MockProvider(responses=[canned])

    raise ValueError(
        f"Unknown provider: {model_config.provider!r}. "
        f"Expected 'gemini', 'anthropic' or 'mock'."
    )


def api_key_for(provider: str, settings: Settings) -> str:
    """Returns the configured API key for a provider ("" if none needed or set)."""
    if provider == "gemini":
        return settings.google_api_key
    if provider == "anthropic":
        return settings.anthropic_api_key
    return ""


# ---------------------------------------------------------------------------
# Auth dependencies for route handlers
# ---------------------------------------------------------------------------


async def get_current_user(
    authorization: str | None = Header(default=None),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Extracts and validates a Bearer token from the Authorization header.

    Raises:
        HTTPException: 401 with ApiResponse envelope on auth failure.
    """
    if not authorization:
        raise HTTPException(
            status_code=401,
            detail=ApiResponse(
                ok=False,
                error=ApiError(code="UNAUTHORIZED", message="Missing authorization header."),
            ).model_dump(),
        )

    parts = authorization.split(" ", maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(
            status_code=401,
            detail=ApiResponse(
                ok=False,
                error=ApiError(code="UNAUTHORIZED", message="Invalid authorization header format."),
            ).model_dump(),
        )

    user = await auth_service.validate_token(parts[1].strip())
    if user is None:
        raise HTTPException(
            status_code=401,
            detail=ApiResponse(
                ok=False,
                error=ApiError(code="UNAUTHORIZED", message="Invalid or expired token."),
            ).model_dump(),
        )

    return user


async def require_curator(user: User = Depends(get_current_user)) -> User:
    """Admits only admins and moderators. 403 with FORBIDDEN otherwise."""
    if user.role not in ("admin", "moderator"):
        raise HTTPException(
            status_code=403,
            detail=ApiResponse(
                ok=False,
                error=ApiError(code="FORBIDDEN", message="Admin or moderator role required."),
            ).model_dump(),
        )
    return user
