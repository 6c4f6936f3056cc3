"""SQLAlchemy database — relational implementation of DatabaseAdapter.

Async SQLAlchemy 2.x over any async driver (aiosqlite locally and in
tests, asyncpg in production). The relational schema carries the
invariants itself:

- ``daily_sprints`` has a unique ``(user_id, day)`` constraint; the losing
  insert gets an IntegrityError, surfaced as ``AlreadyExists``.
- ``apply_reward`` runs in one transaction: a conditional
  ``UPDATE ... WHERE is_completed = false`` on the target row, then an
  optimistic ``UPDATE user_stats ... WHERE version = :seen``. A lost race
  on either rolls the whole transaction back and the attempt is retried;
  the retry then sees the completed row and raises ``AlreadyCompleted``.
- Lesson targets insert into ``user_progress``, unique on
  ``(user_id, lesson_id)``; a concurrent duplicate insert fails the same
  transaction and is retried the same way.

Usage:
    from codesprint.hooks.sqlstore import SqlStore

    db = SqlStore("sqlite+aiosqlite:///./codesprint.db")
    await db.create_all()
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from codesprint.errors import AlreadyCompleted, AlreadyExists, NotFound
from codesprint.hooks.interfaces import DatabaseAdapter
from codesprint.progression.rewards import advance_stats
from codesprint.schemas import (
    DailySprint,
    Lesson,
    LessonContent,
    LessonProgress,
    Question,
    RewardResult,
    RewardTarget,
    SprintCard,
    SprintTask,
    Track,
    UserStats,
)

logger = logging.getLogger(__name__)

_MAX_REWARD_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


class SprintRow(Base):
    __tablename__ = "daily_sprints"
    __table_args__ = (UniqueConstraint("user_id", "day", name="uq_daily_sprints_user_day"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    day: Mapped[date] = mapped_column(Date)
    topic: Mapped[str] = mapped_column(String(200))
    difficulty: Mapped[str] = mapped_column(String(16))
    cards: Mapped[list[dict[str, Any]]] = mapped_column(JSON)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    xp_earned: Mapped[int] = mapped_column(Integer, default=0)
    reward: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class TaskRow(Base):
    __tablename__ = "sprint_tasks"
    __table_args__ = (UniqueConstraint("user_id", "task_hash", name="uq_sprint_tasks_user_hash"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    task_content: Mapped[dict[str, Any]] = mapped_column(JSON)
    language: Mapped[str] = mapped_column(String(64))
    difficulty: Mapped[str] = mapped_column(String(16))
    task_hash: Mapped[str] = mapped_column(String(64))
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    reward: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class TrackRow(Base):
    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    slug: Mapped[str] = mapped_column(String(80), unique=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    icon: Mapped[str] = mapped_column(String(64), default="book")
    color_gradient: Mapped[str | None] = mapped_column(String(120), nullable=True)
    difficulty: Mapped[str] = mapped_column(String(16))
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class LessonRow(Base):
    __tablename__ = "lessons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    track_id: Mapped[str] = mapped_column(ForeignKey("tracks.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(200))
    content: Mapped[dict[str, Any]] = mapped_column(JSON)
    order: Mapped[int] = mapped_column(Integer)
    xp_reward: Mapped[int] = mapped_column(Integer, default=50)


class QuestionRow(Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    lesson_id: Mapped[str] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"), unique=True
    )
    type: Mapped[str] = mapped_column(String(16))
    question: Mapped[str] = mapped_column(Text)
    options: Mapped[list[str]] = mapped_column(JSON)
    answer: Mapped[int] = mapped_column(Integer)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)


class LessonProgressRow(Base):
    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_user_progress_user_lesson"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    lesson_id: Mapped[str] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"))
    reward: Mapped[dict[str, Any]] = mapped_column(JSON)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class UserStatsRow(Base):
    __tablename__ = "user_stats"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    streak_days: Mapped[int] = mapped_column(Integer, default=0)
    last_active_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_sprints_completed: Mapped[int] = mapped_column(Integer, default=0)
    version: Mapped[int] = mapped_column(Integer, default=0)


# ---------------------------------------------------------------------------
# Row ↔ model conversion
# ---------------------------------------------------------------------------


def _reward(value: dict[str, Any] | None) -> RewardResult | None:
    return RewardResult.model_validate(value) if value is not None else None


def _sprint(row: SprintRow) -> DailySprint:
    return DailySprint(
        id=row.id,
        user_id=row.user_id,
        day=row.day,
        topic=row.topic,
        difficulty=row.difficulty,
        cards=[SprintCard.model_validate(card) for card in row.cards],
        is_completed=row.is_completed,
        xp_earned=row.xp_earned,
        reward=_reward(row.reward),
        created_at=row.created_at,
    )


def _task(row: TaskRow) -> SprintTask:
    return SprintTask(
        id=row.id,
        user_id=row.user_id,
        task_content=row.task_content,
        language=row.language,
        difficulty=row.difficulty,
        task_hash=row.task_hash,
        is_completed=row.is_completed,
        reward=_reward(row.reward),
        created_at=row.created_at,
    )


def _track(row: TrackRow) -> Track:
    return Track(
        id=row.id,
        slug=row.slug,
        title=row.title,
        description=row.description,
        icon=row.icon,
        color_gradient=row.color_gradient,
        difficulty=row.difficulty,
        is_published=row.is_published,
        created_at=row.created_at,
    )


def _lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        track_id=row.track_id,
        title=row.title,
        content=LessonContent.model_validate(row.content),
        order=row.order,
        xp_reward=row.xp_reward,
    )


def _question(row: QuestionRow) -> Question:
    return Question(
        id=row.id,
        lesson_id=row.lesson_id,
        type=row.type,
        question=row.question,
        options=list(row.options),
        answer=row.answer,
        explanation=row.explanation,
    )


def _progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        id=row.id,
        user_id=row.user_id,
        lesson_id=row.lesson_id,
        reward=RewardResult.model_validate(row.reward),
        completed_at=row.completed_at,
    )


def _stats(row: UserStatsRow) -> UserStats:
    return UserStats(
        user_id=row.user_id,
        xp=row.xp,
        level=row.level,
        streak_days=row.streak_days,
        last_active_date=row.last_active_date,
        total_sprints_completed=row.total_sprints_completed,
    )


class _LostRace(Exception):
    """A conditional update matched no row; retry the whole transaction."""


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class SqlStore(DatabaseAdapter):
    """DatabaseAdapter backed by an async SQLAlchemy engine.

    Args:
        database_url: Async SQLAlchemy URL, e.g.
            ``postgresql+asyncpg://...`` or ``sqlite+aiosqlite:///...``.
    """

    def __init__(self, database_url: str) -> None:
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        self._sessions = async_sessionmaker(
            self._engine, expire_on_commit=False, autoflush=False
        )

    async def create_all(self) -> None:
        """Creates missing tables. Development and tests only."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    # -- Daily sprints ------------------------------------------------------

    async def get_cached_sprint(self, user_id: str, day: date) -> DailySprint | None:
        async with self._sessions() as session:
            row = await session.scalar(
                select(SprintRow).where(SprintRow.user_id == user_id, SprintRow.day == day)
            )
            return _sprint(row) if row is not None else None

    async def get_sprint(self, sprint_id: str) -> DailySprint | None:
        async with self._sessions() as session:
            row = await session.get(SprintRow, sprint_id)
            return _sprint(row) if row is not None else None

    async def create_sprint(
        self,
        *,
        user_id: str,
        day: date,
        topic: str,
        difficulty: str,
        cards: list[SprintCard],
    ) -> DailySprint:
        """Plain INSERT; the unique constraint decides who wins."""
        sprint = DailySprint(
            user_id=user_id, day=day, topic=topic, difficulty=difficulty, cards=cards
        )
        row = SprintRow(
            id=sprint.id,
            user_id=user_id,
            day=day,
            topic=topic,
            difficulty=difficulty,
            cards=[card.model_dump(by_alias=True, exclude_none=True) for card in cards],
            is_completed=False,
            xp_earned=0,
            created_at=sprint.created_at,
        )
        async with self._sessions() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise AlreadyExists(f"Sprint for {user_id} on {day} already exists.") from exc
        return sprint

    # -- Single tasks -------------------------------------------------------

    async def create_sprint_task(self, task: SprintTask) -> SprintTask:
        row = TaskRow(
            id=task.id,
            user_id=task.user_id,
            task_content=task.task_content,
            language=task.language,
            difficulty=task.difficulty,
            task_hash=task.task_hash,
            is_completed=False,
            created_at=task.created_at,
        )
        async with self._sessions() as session:
            session.add(row)
            try:
                await session.commit()
                return task
            except IntegrityError:
                await session.rollback()
            existing = await session.scalar(
                select(TaskRow).where(
                    TaskRow.user_id == task.user_id, TaskRow.task_hash == task.task_hash
                )
            )
            if existing is None:
                raise AlreadyExists(f"Task {task.id} conflicts with an existing row.")
            return _task(existing)

    async def get_sprint_task(self, task_id: str) -> SprintTask | None:
        async with self._sessions() as session:
            row = await session.get(TaskRow, task_id)
            return _task(row) if row is not None else None

    # -- Curriculum ---------------------------------------------------------

    async def insert_track(self, track: Track) -> Track:
        async with self._sessions() as session:
            session.add(
                TrackRow(
                    id=track.id,
                    slug=track.slug,
                    title=track.title,
                    description=track.description,
                    icon=track.icon,
                    color_gradient=track.color_gradient,
                    difficulty=track.difficulty,
                    is_published=track.is_published,
                    created_at=track.created_at,
                )
            )
            await session.commit()
        return track

    async def insert_lesson(self, lesson: Lesson) -> Lesson:
        async with self._sessions() as session:
            if await session.get(TrackRow, lesson.track_id) is None:
                raise NotFound(f"Track {lesson.track_id} does not exist.")
            session.add(
                LessonRow(
                    id=lesson.id,
                    track_id=lesson.track_id,
                    title=lesson.title,
                    content=lesson.content.model_dump(),
                    order=lesson.order,
                    xp_reward=lesson.xp_reward,
                )
            )
            await session.commit()
        return lesson

    async def insert_question(self, question: Question) -> Question:
        async with self._sessions() as session:
            if await session.get(LessonRow, question.lesson_id) is None:
                raise NotFound(f"Lesson {question.lesson_id} does not exist.")
            session.add(
                QuestionRow(
                    id=question.id,
                    lesson_id=question.lesson_id,
                    type=question.type,
                    question=question.question,
                    options=list(question.options),
                    answer=question.answer,
                    explanation=question.explanation,
                )
            )
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise AlreadyExists(
                    f"Lesson {question.lesson_id} already has a question."
                ) from exc
        return question

    async def get_track(self, track_id: str) -> Track | None:
        async with self._sessions() as session:
            row = await session.get(TrackRow, track_id)
            return _track(row) if row is not None else None

    async def list_lessons(self, track_id: str) -> list[Lesson]:
        async with self._sessions() as session:
            rows = await session.scalars(
                select(LessonRow).where(LessonRow.track_id == track_id).order_by(LessonRow.order)
            )
            return [_lesson(row) for row in rows]

    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        async with self._sessions() as session:
            row = await session.get(LessonRow, lesson_id)
            return _lesson(row) if row is not None else None

    async def get_question(self, lesson_id: str) -> Question | None:
        async with self._sessions() as session:
            row = await session.scalar(
                select(QuestionRow).where(QuestionRow.lesson_id == lesson_id)
            )
            return _question(row) if row is not None else None

    async def set_track_published(self, track_id: str, published: bool) -> Track:
        async with self._sessions() as session:
            row = await session.get(TrackRow, track_id)
            if row is None:
                raise NotFound(f"Track {track_id} does not exist.")
            row.is_published = published
            await session.commit()
            return _track(row)

    # -- Progression --------------------------------------------------------

    async def get_user_stats(self, user_id: str) -> UserStats | None:
        async with self._sessions() as session:
            row = await session.get(UserStatsRow, user_id)
            return _stats(row) if row is not None else None

    async def get_lesson_progress(self, user_id: str, lesson_id: str) -> LessonProgress | None:
        async with self._sessions() as session:
            row = await session.scalar(
                select(LessonProgressRow).where(
                    LessonProgressRow.user_id == user_id,
                    LessonProgressRow.lesson_id == lesson_id,
                )
            )
            return _progress(row) if row is not None else None

    async def apply_reward(
        self,
        *,
        user_id: str,
        target: RewardTarget,
        xp_delta: int,
        today: date,
    ) -> RewardResult:
        """One transaction per attempt; retried only when a race was lost."""
        for attempt in range(1, _MAX_REWARD_ATTEMPTS + 1):
            try:
                return await self._apply_reward_once(
                    user_id=user_id, target=target, xp_delta=xp_delta, today=today
                )
            except (_LostRace, IntegrityError):
                logger.info(
                    "apply_reward lost a race for %s %s (attempt %d/%d)",
                    target.kind,
                    target.id,
                    attempt,
                    _MAX_REWARD_ATTEMPTS,
                )
        raise RuntimeError(
            f"apply_reward for {target.kind} {target.id} kept losing races"
        )

    async def _apply_reward_once(
        self,
        *,
        user_id: str,
        target: RewardTarget,
        xp_delta: int,
        today: date,
    ) -> RewardResult:
        async with self._sessions() as session, session.begin():
            if target.kind == "lesson":
                await self._check_lesson_open(session, user_id, target)
            else:
                await self._check_row_open(session, user_id, target)

            stats_row = await session.get(UserStatsRow, user_id)
            seen = stats_row if stats_row is not None else UserStatsRow(
                user_id=user_id,
                xp=0,
                level=1,
                streak_days=0,
                last_active_date=None,
                total_sprints_completed=0,
                version=0,
            )
            updated, result = advance_stats(
                _stats(seen),
                xp_delta=xp_delta,
                today=today,
                counts_as_sprint=target.kind == "sprint",
            )

            if target.kind == "lesson":
                # A concurrent insert trips the unique key; the retry sees it.
                progress = LessonProgress(user_id=user_id, lesson_id=target.id, reward=result)
                session.add(
                    LessonProgressRow(
                        id=progress.id,
                        user_id=user_id,
                        lesson_id=target.id,
                        reward=result.model_dump(),
                        completed_at=progress.completed_at,
                    )
                )
                await session.flush()
            else:
                table = SprintRow if target.kind == "sprint" else TaskRow
                completion = {"is_completed": True, "reward": result.model_dump()}
                if target.kind == "sprint":
                    completion["xp_earned"] = xp_delta
                marked = await session.execute(
                    update(table)
                    .where(table.id == target.id, table.is_completed.is_(False))
                    .values(**completion)
                    .execution_options(synchronize_session=False)
                )
                if marked.rowcount != 1:
                    raise _LostRace()

            new_values = {
                "xp": updated.xp,
                "level": updated.level,
                "streak_days": updated.streak_days,
                "last_active_date": updated.last_active_date,
                "total_sprints_completed": updated.total_sprints_completed,
            }
            if stats_row is None:
                session.add(UserStatsRow(user_id=user_id, version=1, **new_values))
                await session.flush()
            else:
                bumped = await session.execute(
                    update(UserStatsRow)
                    .where(
                        UserStatsRow.user_id == user_id,
                        UserStatsRow.version == stats_row.version,
                    )
                    .values(version=stats_row.version + 1, **new_values)
                    .execution_options(synchronize_session=False)
                )
                if bumped.rowcount != 1:
                    raise _LostRace()
        return result

    @staticmethod
    async def _check_row_open(
        session: AsyncSession, user_id: str, target: RewardTarget
    ) -> None:
        table = SprintRow if target.kind == "sprint" else TaskRow
        row = await session.get(table, target.id)
        if row is None or row.user_id != user_id:
            raise NotFound(f"No {target.kind} {target.id} for this user.")
        if row.is_completed:
            if row.reward is None:
                raise RuntimeError(
                    f"{target.kind} {target.id} is completed but has no stored reward."
                )
            raise AlreadyCompleted(
                f"{target.kind} {target.id} was already completed.",
                result=RewardResult.model_validate(row.reward),
            )

    @staticmethod
    async def _check_lesson_open(
        session: AsyncSession, user_id: str, target: RewardTarget
    ) -> None:
        if await session.get(LessonRow, target.id) is None:
            raise NotFound(f"No lesson {target.id}.")
        prior = await session.scalar(
            select(LessonProgressRow).where(
                LessonProgressRow.user_id == user_id,
                LessonProgressRow.lesson_id == target.id,
            )
        )
        if prior is not None:
            raise AlreadyCompleted(
                f"lesson {target.id} was already completed.",
                result=RewardResult.model_validate(prior.reward),
            )
