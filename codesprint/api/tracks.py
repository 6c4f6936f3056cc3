"""Track routes — full-course synthesis and read-back.

- POST /tracks             synthesize a track (admin/moderator only)
- GET  /tracks/{track_id}  the track with its lessons and questions

New tracks are stored unpublished. Unpublished tracks are only visible to
admins and moderators; everyone else gets 404.

Tier 3 orchestration module: imports from deps, schemas, sprint/.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from codesprint.api.deps import (
    get_current_user,
    get_database,
    get_orchestrator,
    require_curator,
)
from codesprint.errors import NotFound
from codesprint.hooks.interfaces import DatabaseAdapter
from codesprint.schemas import ApiResponse, User
from codesprint.sprint.orchestrator import SprintOrchestrator

router = APIRouter()


class SynthesizeTrackRequest(BaseModel):
    """Request body for POST /tracks."""

    topic: str
    difficulty: str = "BEGINNER"


@router.post("")
async def synthesize_track(
    body: SynthesizeTrackRequest,
    user: User = Depends(require_curator),
    orchestrator: SprintOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    track = await orchestrator.synthesize_track(body.topic, body.difficulty, user_id=user.id)
    return ApiResponse(
        ok=True,
        data={
            "track_id": track.id,
            "slug": track.slug,
            "title": track.title,
            "is_published": track.is_published,
        },
    ).model_dump()


@router.get("/{track_id}")
async def get_track(
    track_id: str,
    user: User = Depends(get_current_user),
    db: DatabaseAdapter = Depends(get_database),
) -> dict[str, Any]:
    track = await db.get_track(track_id)
    if track is None or (not track.is_published and user.role == "member"):
        raise NotFound(f"Track {track_id} not found.")

    lessons = []
    for lesson in await db.list_lessons(track_id):
        question = await db.get_question(lesson.id)
        entry = lesson.model_dump(mode="json")
        entry["question"] = question.model_dump(mode="json") if question is not None else None
        lessons.append(entry)

    data = track.model_dump(mode="json")
    data["lessons"] = lessons
    return ApiResponse(ok=True, data=data).model_dump()
