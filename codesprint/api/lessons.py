"""Lesson routes — completion of a single curriculum lesson.

- POST /lessons/{lesson_id}/complete  award the lesson's xp_reward, once

Lessons of an unpublished track are hidden from members exactly like the
track itself (404). Repeat completions return the first reward.

Tier 3 orchestration module: imports from deps, schemas, progression/.
"""

from typing import Any

from fastapi import APIRouter, Depends

from codesprint.api.deps import get_current_user, get_database, get_progression
from codesprint.errors import NotFound
from codesprint.hooks.interfaces import DatabaseAdapter
from codesprint.progression.engine import ProgressionEngine
from codesprint.schemas import ApiResponse, User

router = APIRouter()


@router.post("/{lesson_id}/complete")
async def complete_lesson(
    lesson_id: str,
    user: User = Depends(get_current_user),
    db: DatabaseAdapter = Depends(get_database),
    progression: ProgressionEngine = Depends(get_progression),
) -> dict[str, Any]:
    lesson = await db.get_lesson(lesson_id)
    track = await db.get_track(lesson.track_id) if lesson is not None else None
    if track is None or (not track.is_published and user.role == "member"):
        raise NotFound(f"Lesson {lesson_id} not found.")

    result = await progression.complete_lesson(user.id, lesson_id)
    return ApiResponse(ok=True, data=result.model_dump()).model_dump()
