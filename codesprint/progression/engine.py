"""Progression engine — turns completions into durable stats deltas.

Validates the caller's answer trace, computes the XP with the pure
formulas, and hands the delta to the store's atomic ``apply_reward``.
Nothing here writes UserStats directly.

A repeated completion is not an error: the store raises AlreadyCompleted
carrying the first result, and the engine returns that result unchanged.

Usage:
    engine = ProgressionEngine(db)
    result = await engine.complete_sprint(
        "u1", sprint_id, questions_correct=5, total_questions=5, combo_max=5
    )
    result.xp_earned  # 82
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

from codesprint.errors import AlreadyCompleted, InvalidInput, NotFound
from codesprint.hooks.interfaces import DatabaseAdapter
from codesprint.progression.formulas import xp_for
from codesprint.schemas import RewardResult, RewardTarget, SprintTask, UserStats

logger = logging.getLogger(__name__)


def utc_today() -> date:
    """Calendar day used for caching and streaks."""
    return datetime.now(timezone.utc).date()


def task_hash(task_content: dict[str, Any]) -> str:
    """sha256 of the canonical JSON form of a task's content."""
    canonical = json.dumps(task_content, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ProgressionEngine:
    """Computes and applies rewards through the store's atomic operation.

    Args:
        db: Store adapter; its ``apply_reward`` is the only stats writer.
        today_fn: Returns the current calendar day. Injected in tests.
    """

    def __init__(
        self,
        db: DatabaseAdapter,
        today_fn: Callable[[], date] = utc_today,
    ) -> None:
        self._db = db
        self._today = today_fn

    async def complete_sprint(
        self,
        user_id: str,
        sprint_id: str,
        *,
        questions_correct: int,
        total_questions: int,
        combo_max: int,
    ) -> RewardResult:
        """Rewards a finished sprint once.

        An already-completed sprint returns its stored result before the
        counts are looked at, so a retried request always gets the first
        reward back.

        Raises:
            InvalidInput: Negative counts, more correct answers than
                questions, a combo longer than the correct answers, or more
                questions than the sprint has scored cards.
            NotFound: No such sprint for this user.
        """
        sprint = await self._db.get_sprint(sprint_id)
        if sprint is None or sprint.user_id != user_id:
            raise NotFound(f"No sprint {sprint_id} for this user.")
        if sprint.is_completed and sprint.reward is not None:
            logger.info(
                "sprint %s already completed by %s; returning prior reward", sprint_id, user_id
            )
            return sprint.reward

        if min(questions_correct, total_questions, combo_max) < 0:
            raise InvalidInput("Counts must not be negative.")
        if questions_correct > total_questions:
            raise InvalidInput(
                f"questions_correct ({questions_correct}) exceeds "
                f"total_questions ({total_questions})."
            )
        if combo_max > questions_correct:
            raise InvalidInput(
                f"combo_max ({combo_max}) exceeds questions_correct ({questions_correct})."
            )
        scored = sum(1 for card in sprint.cards if card.is_scored)
        if total_questions > scored:
            raise InvalidInput(
                f"total_questions ({total_questions}) exceeds the sprint's "
                f"{scored} scored cards."
            )

        breakdown = xp_for(questions_correct, combo_max)
        return await self._reward(
            user_id, RewardTarget(kind="sprint", id=sprint_id), breakdown.xp_earned
        )

    async def create_task(
        self,
        user_id: str,
        task_content: dict[str, Any],
        *,
        language: str,
        difficulty: str = "INTERMEDIATE",
    ) -> SprintTask:
        """Stores a single task, or returns the user's identical one."""
        if not task_content:
            raise InvalidInput("Task content must not be empty.")
        if not language.strip():
            raise InvalidInput("Task language must not be blank.")
        task = SprintTask(
            user_id=user_id,
            task_content=task_content,
            language=language.strip(),
            difficulty=difficulty,
            task_hash=task_hash(task_content),
        )
        return await self._db.create_sprint_task(task)

    async def complete_task(self, user_id: str, task_id: str) -> RewardResult:
        """Rewards a single task once; later calls return the first result."""
        breakdown = xp_for(questions_correct=1, combo_max=0)
        return await self._reward(
            user_id, RewardTarget(kind="task", id=task_id), breakdown.xp_earned
        )

    async def complete_lesson(self, user_id: str, lesson_id: str) -> RewardResult:
        """Awards the lesson's ``xp_reward`` once per user.

        Raises:
            NotFound: No such lesson.
        """
        lesson = await self._db.get_lesson(lesson_id)
        if lesson is None:
            raise NotFound(f"No lesson {lesson_id}.")
        return await self._reward(
            user_id, RewardTarget(kind="lesson", id=lesson_id), lesson.xp_reward
        )

    async def get_stats(self, user_id: str) -> UserStats:
        """Returns the user's stats, or a zero row if never rewarded."""
        stats = await self._db.get_user_stats(user_id)
        return stats if stats is not None else UserStats(user_id=user_id)

    async def _reward(self, user_id: str, target: RewardTarget, xp_delta: int) -> RewardResult:
        try:
            result = await self._db.apply_reward(
                user_id=user_id, target=target, xp_delta=xp_delta, today=self._today()
            )
        except AlreadyCompleted as exc:
            logger.info(
                "%s %s already completed by %s; returning prior reward",
                target.kind,
                target.id,
                user_id,
            )
            return exc.result
        logger.info(
            "Rewarded %s %s for %s: +%d xp (level %d, streak %d)",
            target.kind,
            target.id,
            user_id,
            result.xp_earned,
            result.new_level,
            result.new_streak,
        )
        return result
