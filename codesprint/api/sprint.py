"""Learner-facing API routes — daily sprint, single tasks, stats.

Five endpoints, all behind get_current_user:
- POST /sprint/start                 today's sprint (cached, fresh or degraded)
- POST /sprint/{sprint_id}/complete  reward a finished sprint, once
- POST /tasks                        store a single task (deduplicated)
- POST /tasks/{task_id}/complete     reward a single task, once
- GET  /stats                        xp, level progress, streak

Engine errors (InvalidInput, NotFound) propagate to the SprintEngineError
handler in main.py, which maps them onto the envelope.

Tier 3 orchestration module: imports from deps, schemas, sprint/, progression/.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from codesprint.api.deps import get_current_user, get_orchestrator, get_progression
from codesprint.progression.engine import ProgressionEngine
from codesprint.progression.formulas import level_progress
from codesprint.schemas import ApiResponse, Difficulty, RewardResult, User
from codesprint.sprint.orchestrator import SprintOrchestrator

router = APIRouter()


# ---------------------------------------------------------------------------
# Request bodies (API-boundary types, local to this module)
# ---------------------------------------------------------------------------


class StartSprintRequest(BaseModel):
    """Request body for POST /sprint/start. Omitted topic uses the default."""

    topic: str | None = None
    difficulty: str = "INTERMEDIATE"


class CompleteSprintRequest(BaseModel):
    """Request body for POST /sprint/{sprint_id}/complete."""

    questions_correct: int
    total_questions: int
    combo_max: int


class CreateTaskRequest(BaseModel):
    """Request body for POST /tasks."""

    task_content: dict[str, Any] = Field(min_length=1)
    language: str
    difficulty: Difficulty = "INTERMEDIATE"


def _reward_data(result: RewardResult) -> dict[str, Any]:
    return result.model_dump()


# ---------------------------------------------------------------------------
# Sprint
# ---------------------------------------------------------------------------


@router.post("/sprint/start")
async def start_sprint(
    body: StartSprintRequest | None = None,
    user: User = Depends(get_current_user),
    orchestrator: SprintOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Returns today's cards. Never fails on provider trouble: ``degraded``
    is true and ``sprint_id`` null when the fallback card was served."""
    body = body or StartSprintRequest()
    start = await orchestrator.start_sprint(user.id, body.topic, body.difficulty)
    return ApiResponse(
        ok=True,
        data={
            "sprint_id": start.sprint_id,
            "topic": start.topic,
            "degraded": start.degraded,
            "cached": start.cached,
            "cards": [
                card.model_dump(by_alias=True, exclude_none=True) for card in start.cards
            ],
        },
    ).model_dump()


@router.post("/sprint/{sprint_id}/complete")
async def complete_sprint(
    sprint_id: str,
    body: CompleteSprintRequest,
    user: User = Depends(get_current_user),
    progression: ProgressionEngine = Depends(get_progression),
) -> dict[str, Any]:
    result = await progression.complete_sprint(
        user.id,
        sprint_id,
        questions_correct=body.questions_correct,
        total_questions=body.total_questions,
        combo_max=body.combo_max,
    )
    return ApiResponse(ok=True, data=_reward_data(result)).model_dump()


# ---------------------------------------------------------------------------
# Single tasks
# ---------------------------------------------------------------------------


@router.post("/tasks")
async def create_task(
    body: CreateTaskRequest,
    user: User = Depends(get_current_user),
    progression: ProgressionEngine = Depends(get_progression),
) -> dict[str, Any]:
    task = await progression.create_task(
        user.id, body.task_content, language=body.language, difficulty=body.difficulty
    )
    return ApiResponse(ok=True, data=task.model_dump(mode="json")).model_dump()


@router.post("/tasks/{task_id}/complete")
async def complete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    progression: ProgressionEngine = Depends(get_progression),
) -> dict[str, Any]:
    result = await progression.complete_task(user.id, task_id)
    return ApiResponse(ok=True, data=_reward_data(result)).model_dump()


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@router.get("/stats")
async def get_stats(
    user: User = Depends(get_current_user),
    progression: ProgressionEngine = Depends(get_progression),
) -> dict[str, Any]:
    stats = await progression.get_stats(user.id)
    level, level_base_xp, next_level_xp = level_progress(stats.xp)
    data = stats.model_dump(mode="json")
    data.update(level=level, level_base_xp=level_base_xp, next_level_xp=next_level_xp)
    return ApiResponse(ok=True, data=data).model_dump()
