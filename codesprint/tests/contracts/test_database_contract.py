"""Behavioral contract tests for DatabaseAdapter.

Verifies that any DatabaseAdapter implementation satisfies:
- One cached sprint per (user, day), enforced by the store itself
- Task deduplication on (user, task_hash)
- Curriculum parent checks, lesson ordering, one question per lesson
- apply_reward: completes and updates stats in one step, exactly once,
  only for the owning user; lesson progress once per (user, lesson)
- The same guarantees under concurrent callers (asyncio.gather)

These tests use only the public interface — no internal state inspection.

Run against registered implementations:
    python -m pytest codesprint/tests/contracts/test_database_contract.py -v
"""

import asyncio
from datetime import date, timedelta

import pytest

from codesprint.errors import AlreadyCompleted, AlreadyExists, NotFound
from codesprint.schemas import (
    DailySprint,
    Lesson,
    Question,
    RewardResult,
    RewardTarget,
    SprintTask,
    Track,
)

_DAY = date(2026, 3, 10)


async def _sprint(database, cards, user_id: str = "u1", day: date = _DAY):
    return await database.create_sprint(
        user_id=user_id, day=day, topic="Python", difficulty="BEGINNER", cards=cards
    )


async def _track_with_lessons(database, content, orders=(1, 2)):
    track = await database.insert_track(
        Track(slug="rust-a1b2c3", title="Rust", difficulty="BEGINNER")
    )
    lessons = []
    for order in orders:
        lessons.append(
            await database.insert_lesson(
                Lesson(track_id=track.id, title=f"L{order}", content=content, order=order)
            )
        )
    return track, lessons


class TestSprintCacheContract:
    @pytest.mark.asyncio
    async def test_create_then_fetch_by_key(self, database, sample_cards) -> None:
        """A created sprint is returned by get_cached_sprint with its cards intact."""
        created = await _sprint(database, sample_cards)
        cached = await database.get_cached_sprint("u1", _DAY)
        assert cached is not None
        assert cached.id == created.id
        assert cached.cards == sample_cards
        assert cached.is_completed is False

    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self, database) -> None:
        assert await database.get_cached_sprint("nobody", _DAY) is None
        assert await database.get_sprint("no-such-id") is None

    @pytest.mark.asyncio
    async def test_second_create_same_day_raises(self, database, sample_cards) -> None:
        """The (user_id, day) key is unique; the loser gets AlreadyExists."""
        first = await _sprint(database, sample_cards)
        with pytest.raises(AlreadyExists):
            await _sprint(database, sample_cards[:1])
        cached = await database.get_cached_sprint("u1", _DAY)
        assert cached.id == first.id

    @pytest.mark.asyncio
    async def test_other_day_and_other_user_are_separate(self, database, sample_cards) -> None:
        await _sprint(database, sample_cards)
        tomorrow = await _sprint(database, sample_cards, day=_DAY + timedelta(days=1))
        other = await _sprint(database, sample_cards, user_id="u2")
        assert tomorrow.id != other.id


class TestTaskContract:
    @pytest.mark.asyncio
    async def test_duplicate_hash_returns_existing(self, database) -> None:
        """Same (user_id, task_hash) yields the originally stored task."""
        first = await database.create_sprint_task(
            SprintTask(user_id="u1", task_content={"a": 1}, language="go", task_hash="h1")
        )
        second = await database.create_sprint_task(
            SprintTask(user_id="u1", task_content={"a": 1}, language="go", task_hash="h1")
        )
        assert second.id == first.id
        fetched = await database.get_sprint_task(first.id)
        assert fetched is not None and fetched.task_content == {"a": 1}

    @pytest.mark.asyncio
    async def test_same_hash_other_user_is_new_task(self, database) -> None:
        a = await database.create_sprint_task(
            SprintTask(user_id="u1", task_content={"a": 1}, language="go", task_hash="h1")
        )
        b = await database.create_sprint_task(
            SprintTask(user_id="u2", task_content={"a": 1}, language="go", task_hash="h1")
        )
        assert a.id != b.id


class TestCurriculumContract:
    @pytest.mark.asyncio
    async def test_lessons_listed_in_order(self, database, sample_lesson_content) -> None:
        track, _ = await _track_with_lessons(database, sample_lesson_content, orders=(3, 1, 2))
        lessons = await database.list_lessons(track.id)
        assert [lesson.order for lesson in lessons] == [1, 2, 3]
        assert lessons[0].content == sample_lesson_content

    @pytest.mark.asyncio
    async def test_lesson_needs_existing_track(self, database, sample_lesson_content) -> None:
        with pytest.raises(NotFound):
            await database.insert_lesson(
                Lesson(track_id="ghost", title="L", content=sample_lesson_content, order=1)
            )

    @pytest.mark.asyncio
    async def test_question_needs_existing_lesson(self, database) -> None:
        with pytest.raises(NotFound):
            await database.insert_question(
                Question(lesson_id="ghost", question="?", options=["a", "b"], answer=0)
            )

    @pytest.mark.asyncio
    async def test_one_question_per_lesson(self, database, sample_lesson_content) -> None:
        _, lessons = await _track_with_lessons(database, sample_lesson_content, orders=(1,))
        lesson_id = lessons[0].id
        await database.insert_question(
            Question(lesson_id=lesson_id, question="First?", options=["a", "b"], answer=1)
        )
        with pytest.raises(AlreadyExists):
            await database.insert_question(
                Question(lesson_id=lesson_id, question="Second?", options=["a", "b"], answer=0)
            )
        stored = await database.get_question(lesson_id)
        assert stored is not None
        assert (stored.question, stored.answer) == ("First?", 1)

    @pytest.mark.asyncio
    async def test_tracks_start_unpublished(self, database, sample_lesson_content) -> None:
        track, _ = await _track_with_lessons(database, sample_lesson_content)
        assert (await database.get_track(track.id)).is_published is False
        published = await database.set_track_published(track.id, True)
        assert published.is_published is True
        assert (await database.get_track(track.id)).is_published is True

    @pytest.mark.asyncio
    async def test_publish_unknown_track(self, database) -> None:
        with pytest.raises(NotFound):
            await database.set_track_published("ghost", True)


class TestApplyRewardContract:
    @pytest.mark.asyncio
    async def test_first_reward_creates_stats(self, database, sample_cards) -> None:
        """First reward for a user creates the stats row and completes the sprint."""
        sprint = await _sprint(database, sample_cards)
        result = await database.apply_reward(
            user_id="u1",
            target=RewardTarget(kind="sprint", id=sprint.id),
            xp_delta=82,
            today=_DAY,
        )
        assert (result.xp_earned, result.new_xp, result.new_streak, result.new_level) == (
            82,
            82,
            1,
            1,
        )
        stats = await database.get_user_stats("u1")
        assert stats is not None
        assert (stats.xp, stats.total_sprints_completed, stats.last_active_date) == (82, 1, _DAY)
        stored = await database.get_sprint(sprint.id)
        assert stored.is_completed is True
        assert stored.xp_earned == 82
        assert stored.reward == result

    @pytest.mark.asyncio
    async def test_second_reward_raises_with_prior_result(self, database, sample_cards) -> None:
        """A completed target is never rewarded again; the prior result travels."""
        sprint = await _sprint(database, sample_cards)
        target = RewardTarget(kind="sprint", id=sprint.id)
        first = await database.apply_reward(user_id="u1", target=target, xp_delta=20, today=_DAY)
        with pytest.raises(AlreadyCompleted) as exc_info:
            await database.apply_reward(user_id="u1", target=target, xp_delta=999, today=_DAY)
        assert exc_info.value.result == first
        assert (await database.get_user_stats("u1")).xp == 20

    @pytest.mark.asyncio
    async def test_foreign_target_not_found(self, database, sample_cards) -> None:
        sprint = await _sprint(database, sample_cards, user_id="owner")
        with pytest.raises(NotFound):
            await database.apply_reward(
                user_id="intruder",
                target=RewardTarget(kind="sprint", id=sprint.id),
                xp_delta=10,
                today=_DAY,
            )
        assert (await database.get_sprint(sprint.id)).is_completed is False
        assert await database.get_user_stats("intruder") is None

    @pytest.mark.asyncio
    async def test_task_reward_does_not_count_as_sprint(self, database) -> None:
        task = await database.create_sprint_task(
            SprintTask(user_id="u1", task_content={"a": 1}, language="go", task_hash="h")
        )
        await database.apply_reward(
            user_id="u1", target=RewardTarget(kind="task", id=task.id), xp_delta=10, today=_DAY
        )
        stats = await database.get_user_stats("u1")
        assert (stats.xp, stats.total_sprints_completed) == (10, 0)
        assert (await database.get_sprint_task(task.id)).is_completed is True

    @pytest.mark.asyncio
    async def test_rewards_accumulate_and_cross_level(self, database, sample_cards) -> None:
        first = await _sprint(database, sample_cards)
        second = await _sprint(database, sample_cards, day=_DAY + timedelta(days=1))
        await database.apply_reward(
            user_id="u1", target=RewardTarget(kind="sprint", id=first.id), xp_delta=900, today=_DAY
        )
        result = await database.apply_reward(
            user_id="u1",
            target=RewardTarget(kind="sprint", id=second.id),
            xp_delta=200,
            today=_DAY + timedelta(days=1),
        )
        assert (result.new_xp, result.new_level, result.new_streak) == (1100, 2, 2)

    @pytest.mark.asyncio
    async def test_lesson_reward_recorded_once_per_user(
        self, database, sample_lesson_content
    ) -> None:
        """Lesson progress is keyed by (user, lesson); a repeat carries the prior result."""
        _, lessons = await _track_with_lessons(database, sample_lesson_content, orders=(1,))
        target = RewardTarget(kind="lesson", id=lessons[0].id)

        first = await database.apply_reward(user_id="u1", target=target, xp_delta=50, today=_DAY)
        with pytest.raises(AlreadyCompleted) as exc_info:
            await database.apply_reward(user_id="u1", target=target, xp_delta=50, today=_DAY)
        other = await database.apply_reward(user_id="u2", target=target, xp_delta=50, today=_DAY)

        assert exc_info.value.result == first
        assert (first.xp_earned, first.new_xp) == (50, 50)
        assert other.new_xp == 50
        stats = await database.get_user_stats("u1")
        assert (stats.xp, stats.total_sprints_completed) == (50, 0)
        progress = await database.get_lesson_progress("u1", lessons[0].id)
        assert progress is not None
        assert (progress.user_id, progress.lesson_id, progress.reward) == (
            "u1",
            lessons[0].id,
            first,
        )
        assert await database.get_lesson_progress("u3", lessons[0].id) is None

    @pytest.mark.asyncio
    async def test_unknown_lesson_not_found(self, database) -> None:
        with pytest.raises(NotFound):
            await database.apply_reward(
                user_id="u1",
                target=RewardTarget(kind="lesson", id="ghost"),
                xp_delta=50,
                today=_DAY,
            )
        assert await database.get_user_stats("u1") is None


class TestLessonLookupContract:
    @pytest.mark.asyncio
    async def test_get_lesson(self, database, sample_lesson_content) -> None:
        _, lessons = await _track_with_lessons(database, sample_lesson_content, orders=(1,))
        fetched = await database.get_lesson(lessons[0].id)
        assert fetched == lessons[0]
        assert await database.get_lesson("ghost") is None


class TestConcurrencyContract:
    """Concurrent callers on one store instance; stub and SQL must agree."""

    @pytest.mark.asyncio
    async def test_concurrent_rewards_same_sprint_apply_once(self, database, sample_cards) -> None:
        sprint = await _sprint(database, sample_cards)
        target = RewardTarget(kind="sprint", id=sprint.id)

        outcomes = await asyncio.gather(
            *[
                database.apply_reward(user_id="u1", target=target, xp_delta=82, today=_DAY)
                for _ in range(5)
            ],
            return_exceptions=True,
        )

        winners = [o for o in outcomes if isinstance(o, RewardResult)]
        losers = [o for o in outcomes if isinstance(o, AlreadyCompleted)]
        assert len(winners) == 1
        assert len(losers) == 4
        assert all(loser.result == winners[0] for loser in losers)
        stats = await database.get_user_stats("u1")
        assert (stats.xp, stats.total_sprints_completed) == (82, 1)

    @pytest.mark.asyncio
    async def test_concurrent_rewards_different_sprints_all_count(
        self, database, sample_cards
    ) -> None:
        """Racing stats updates are serialized: final xp is the sum of every delta."""
        sprints = [
            await _sprint(database, sample_cards, day=_DAY - timedelta(days=offset))
            for offset in range(5)
        ]
        deltas = [10, 20, 30, 40, 50]

        results = await asyncio.gather(
            *[
                database.apply_reward(
                    user_id="u1",
                    target=RewardTarget(kind="sprint", id=sprint.id),
                    xp_delta=delta,
                    today=_DAY,
                )
                for sprint, delta in zip(sprints, deltas)
            ]
        )

        assert max(result.new_xp for result in results) == sum(deltas)
        stats = await database.get_user_stats("u1")
        assert (stats.xp, stats.total_sprints_completed) == (sum(deltas), 5)
        for sprint in sprints:
            assert (await database.get_sprint(sprint.id)).is_completed is True

    @pytest.mark.asyncio
    async def test_concurrent_create_sprint_keeps_one_row(self, database, sample_cards) -> None:
        outcomes = await asyncio.gather(
            *[_sprint(database, sample_cards) for _ in range(5)],
            return_exceptions=True,
        )

        created = [o for o in outcomes if isinstance(o, DailySprint)]
        rejected = [o for o in outcomes if isinstance(o, AlreadyExists)]
        assert len(created) == 1
        assert len(rejected) == 4
        cached = await database.get_cached_sprint("u1", _DAY)
        assert cached is not None and cached.id == created[0].id

    @pytest.mark.asyncio
    async def test_concurrent_lesson_completion_applies_once(
        self, database, sample_lesson_content
    ) -> None:
        _, lessons = await _track_with_lessons(database, sample_lesson_content, orders=(1,))
        target = RewardTarget(kind="lesson", id=lessons[0].id)

        outcomes = await asyncio.gather(
            *[
                database.apply_reward(user_id="u1", target=target, xp_delta=50, today=_DAY)
                for _ in range(5)
            ],
            return_exceptions=True,
        )

        assert sum(isinstance(o, RewardResult) for o in outcomes) == 1
        assert sum(isinstance(o, AlreadyCompleted) for o in outcomes) == 4
        assert (await database.get_user_stats("u1")).xp == 50
