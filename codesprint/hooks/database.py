"""In-memory database — development stub for DatabaseAdapter.

Python dict-backed storage. Data lives only in memory and is lost on
restart. The two concurrency contracts of DatabaseAdapter are honoured
with a single asyncio.Lock: ``create_sprint`` enforces the
``(user_id, day)`` uniqueness inside it, and ``apply_reward`` performs its
whole read-modify-write inside it.

Rows are copied on the way in and out so callers can never mutate stored
state behind the store's back.

Tier 2 service module: imports from codesprint.hooks.interfaces (Tier 1),
codesprint.schemas (Tier 1) and codesprint.progression.rewards.

Usage:
    from codesprint.hooks.database import InMemoryStore

    db = InMemoryStore()
    sprint = await db.create_sprint(user_id="u1", day=today, ...)
"""

import asyncio
from datetime import date

from codesprint.errors import AlreadyCompleted, AlreadyExists, NotFound
from codesprint.hooks.interfaces import DatabaseAdapter
from codesprint.progression.rewards import advance_stats
from codesprint.schemas import (
    DailySprint,
    Lesson,
    LessonProgress,
    Question,
    RewardResult,
    RewardTarget,
    SprintCard,
    SprintTask,
    Track,
    UserStats,
)


class InMemoryStore(DatabaseAdapter):
    """STUB — dict-backed storage, loses data on restart.

    Sprints are indexed twice: by id and by the ``(user_id, day)`` unique
    key. Tasks are indexed by id and by ``(user_id, task_hash)``. Lesson
    progress is keyed by ``(user_id, lesson_id)``.

    TEAM: Replace with your database adapter, or use SqlStore.
    """

    def __init__(self) -> None:
        """Initialises empty in-memory tables."""
        self._lock = asyncio.Lock()
        self._sprints: dict[str, DailySprint] = {}
        self._sprint_keys: dict[tuple[str, date], str] = {}
        self._tasks: dict[str, SprintTask] = {}
        self._task_hashes: dict[tuple[str, str], str] = {}
        self._tracks: dict[str, Track] = {}
        self._lessons: dict[str, Lesson] = {}
        self._questions: dict[str, Question] = {}  # keyed by lesson_id
        self._progress: dict[tuple[str, str], LessonProgress] = {}
        self._stats: dict[str, UserStats] = {}

    # -- Daily sprints ------------------------------------------------------

    async def get_cached_sprint(self, user_id: str, day: date) -> DailySprint | None:
        sprint_id = self._sprint_keys.get((user_id, day))
        if sprint_id is None:
            return None
        return self._sprints[sprint_id].model_copy(deep=True)

    async def get_sprint(self, sprint_id: str) -> DailySprint | None:
        sprint = self._sprints.get(sprint_id)
        return sprint.model_copy(deep=True) if sprint is not None else None

    async def create_sprint(
        self,
        *,
        user_id: str,
        day: date,
        topic: str,
        difficulty: str,
        cards: list[SprintCard],
    ) -> DailySprint:
        """Inserts the day's sprint; the unique key is checked under the lock."""
        async with self._lock:
            if (user_id, day) in self._sprint_keys:
                raise AlreadyExists(f"Sprint for {user_id} on {day} already exists.")
            sprint = DailySprint(
                user_id=user_id,
                day=day,
                topic=topic,
                difficulty=difficulty,
                cards=list(cards),
            )
            self._sprints[sprint.id] = sprint
            self._sprint_keys[(user_id, day)] = sprint.id
            return sprint.model_copy(deep=True)

    # -- Single tasks -------------------------------------------------------

    async def create_sprint_task(self, task: SprintTask) -> SprintTask:
        async with self._lock:
            existing_id = self._task_hashes.get((task.user_id, task.task_hash))
            if existing_id is not None:
                return self._tasks[existing_id].model_copy(deep=True)
            stored = task.model_copy(deep=True)
            self._tasks[stored.id] = stored
            self._task_hashes[(stored.user_id, stored.task_hash)] = stored.id
            return stored.model_copy(deep=True)

    async def get_sprint_task(self, task_id: str) -> SprintTask | None:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task is not None else None

    # -- Curriculum ---------------------------------------------------------

    async def insert_track(self, track: Track) -> Track:
        self._tracks[track.id] = track.model_copy()
        return track.model_copy()

    async def insert_lesson(self, lesson: Lesson) -> Lesson:
        if lesson.track_id not in self._tracks:
            raise NotFound(f"Track {lesson.track_id} does not exist.")
        self._lessons[lesson.id] = lesson.model_copy()
        return lesson.model_copy()

    async def insert_question(self, question: Question) -> Question:
        if question.lesson_id not in self._lessons:
            raise NotFound(f"Lesson {question.lesson_id} does not exist.")
        if question.lesson_id in self._questions:
            raise AlreadyExists(f"Lesson {question.lesson_id} already has a question.")
        self._questions[question.lesson_id] = question.model_copy()
        return question.model_copy()

    async def get_track(self, track_id: str) -> Track | None:
        track = self._tracks.get(track_id)
        return track.model_copy() if track is not None else None

    async def list_lessons(self, track_id: str) -> list[Lesson]:
        lessons = [lesson for lesson in self._lessons.values() if lesson.track_id == track_id]
        return [lesson.model_copy() for lesson in sorted(lessons, key=lambda item: item.order)]

    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        lesson = self._lessons.get(lesson_id)
        return lesson.model_copy() if lesson is not None else None

    async def get_question(self, lesson_id: str) -> Question | None:
        question = self._questions.get(lesson_id)
        return question.model_copy() if question is not None else None

    async def set_track_published(self, track_id: str, published: bool) -> Track:
        track = self._tracks.get(track_id)
        if track is None:
            raise NotFound(f"Track {track_id} does not exist.")
        track.is_published = published
        return track.model_copy()

    # -- Progression --------------------------------------------------------

    async def get_user_stats(self, user_id: str) -> UserStats | None:
        stats = self._stats.get(user_id)
        return stats.model_copy() if stats is not None else None

    async def get_lesson_progress(self, user_id: str, lesson_id: str) -> LessonProgress | None:
        progress = self._progress.get((user_id, lesson_id))
        return progress.model_copy() if progress is not None else None

    async def apply_reward(
        self,
        *,
        user_id: str,
        target: RewardTarget,
        xp_delta: int,
        today: date,
    ) -> RewardResult:
        """Completes the target and updates stats under one lock acquisition."""
        async with self._lock:
            if target.kind == "lesson":
                return self._reward_lesson(user_id, target, xp_delta, today)

            rows = self._sprints if target.kind == "sprint" else self._tasks
            row = rows.get(target.id)
            if row is None or row.user_id != user_id:
                raise NotFound(f"No {target.kind} {target.id} for this user.")
            if row.is_completed:
                if row.reward is None:
                    raise RuntimeError(
                        f"{target.kind} {target.id} is completed but has no stored reward."
                    )
                raise AlreadyCompleted(
                    f"{target.kind} {target.id} was already completed.",
                    result=row.reward,
                )

            stats = self._stats.get(user_id) or UserStats(user_id=user_id)
            updated, result = advance_stats(
                stats,
                xp_delta=xp_delta,
                today=today,
                counts_as_sprint=target.kind == "sprint",
            )

            row.is_completed = True
            row.reward = result
            if isinstance(row, DailySprint):
                row.xp_earned = xp_delta
            self._stats[user_id] = updated
            return result

    def _reward_lesson(
        self, user_id: str, target: RewardTarget, xp_delta: int, today: date
    ) -> RewardResult:
        """Records the (user, lesson) progress row. Caller holds the lock."""
        if target.id not in self._lessons:
            raise NotFound(f"No lesson {target.id}.")
        prior = self._progress.get((user_id, target.id))
        if prior is not None:
            raise AlreadyCompleted(
                f"lesson {target.id} was already completed.", result=prior.reward
            )

        stats = self._stats.get(user_id) or UserStats(user_id=user_id)
        updated, result = advance_stats(
            stats, xp_delta=xp_delta, today=today, counts_as_sprint=False
        )
        self._progress[(user_id, target.id)] = LessonProgress(
            user_id=user_id, lesson_id=target.id, reward=result
        )
        self._stats[user_id] = updated
        return result
