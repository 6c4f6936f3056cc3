"""Content store — persists normalized sprints and curriculum.

Thin service over the DatabaseAdapter hook. Sprint caching is a straight
pass-through (the adapter's unique key is authoritative). Track publishing
writes the track, then each lesson followed by its question, in provider
order. There is no rollback across the three entity kinds: a failure after
the track row is committed is surfaced as PartialSynthesisFailure and the
committed rows stay behind as an unpublished draft.

Usage:
    store = ContentStore(db)
    track = await store.publish_track(draft)
"""

import logging
from datetime import date

from codesprint.errors import PartialSynthesisFailure
from codesprint.hooks.interfaces import DatabaseAdapter
from codesprint.schemas import (
    DailySprint,
    Lesson,
    Question,
    SprintCard,
    Track,
    TrackDraft,
)

logger = logging.getLogger(__name__)


class ContentStore:
    """Writes synthesized content through a DatabaseAdapter."""

    def __init__(self, db: DatabaseAdapter) -> None:
        self._db = db

    async def get_cached_sprint(self, user_id: str, day: date) -> DailySprint | None:
        return await self._db.get_cached_sprint(user_id, day)

    async def create_sprint(
        self,
        *,
        user_id: str,
        day: date,
        topic: str,
        difficulty: str,
        cards: list[SprintCard],
    ) -> DailySprint:
        """Raises AlreadyExists when another call won the day's row."""
        return await self._db.create_sprint(
            user_id=user_id, day=day, topic=topic, difficulty=difficulty, cards=cards
        )

    async def publish_track(self, draft: TrackDraft) -> Track:
        """Inserts the track, then each lesson and its question.

        The track is inserted unpublished. A failure on the track insert
        itself propagates unchanged since nothing was written.

        Raises:
            PartialSynthesisFailure: A lesson or question insert failed
                after the track row was committed.
        """
        track = await self._db.insert_track(
            Track(
                slug=draft.slug,
                title=draft.title,
                description=draft.description,
                icon=draft.icon,
                color_gradient=draft.color_gradient,
                difficulty=draft.difficulty,
            )
        )

        committed = 0
        for lesson_draft in draft.lessons:
            try:
                lesson = await self._db.insert_lesson(
                    Lesson(
                        track_id=track.id,
                        title=lesson_draft.title,
                        content=lesson_draft.content,
                        order=lesson_draft.order,
                        xp_reward=lesson_draft.xp_reward,
                    )
                )
                q = lesson_draft.question
                await self._db.insert_question(
                    Question(
                        lesson_id=lesson.id,
                        type=q.type,
                        question=q.question,
                        options=list(q.options),
                        answer=q.answer,
                        explanation=q.explanation,
                    )
                )
            except Exception as exc:
                logger.warning(
                    "Track %s (%s) partially written: %d/%d lessons committed, "
                    "lesson %d failed: %s",
                    track.id,
                    track.slug,
                    committed,
                    len(draft.lessons),
                    lesson_draft.order,
                    exc,
                )
                raise PartialSynthesisFailure(
                    f"Track {track.id} left as a draft after "
                    f"{committed} of {len(draft.lessons)} lessons.",
                    track_id=track.id,
                    lessons_committed=committed,
                ) from exc
            committed += 1

        logger.info(
            "Published track %s (%s) with %d lessons", track.id, track.slug, committed
        )
        return track
