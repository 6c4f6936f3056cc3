"""Hook interfaces — abstract base classes for all swappable services.

These ABCs define the contracts between the engine and the infrastructure
layer. Each one has a stub implementation that lets the platform run
end-to-end without real infrastructure, and the database also has a
SQLAlchemy implementation.

Tier 1 leaf module: imports only from abc, datetime (stdlib),
codesprint.schemas and codesprint.errors (also Tier 1).

TEAM: To implement a real service, subclass the relevant ABC and implement
every abstract method. Python will raise TypeError at instantiation if
any method is missing — you'll know immediately what's left to do.

Usage:
    from codesprint.hooks.interfaces import AuthService, DatabaseAdapter
"""

from abc import ABC, abstractmethod
from datetime import date

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
    User,
    UserStats,
)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class AuthService(ABC):
    """Validates auth tokens and resolves users.

    The auth provider lives behind this interface. The engine never touches
    tokens directly; it asks the AuthService and gets a User back.

    TEAM: Replace the stub (FakeAuthService) with your auth provider.
    """

    @abstractmethod
    async def validate_token(self, token: str) -> User | None:
        """Validates an auth token and returns the associated user.

        Returns:
            The User if the token is valid and not expired, None otherwise.
        """
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None:
        """Looks up a user by their ID. None if the user doesn't exist."""
        ...


# ---------------------------------------------------------------------------
# Database (relational store boundary)
# ---------------------------------------------------------------------------


class DatabaseAdapter(ABC):
    """Row-level storage for sprints, tasks, curriculum and user stats.

    Two operations carry concurrency contracts; everything else is plain
    CRUD:

    - ``create_sprint`` relies on a ``(user_id, day)`` uniqueness guarantee
      and raises ``AlreadyExists`` for the losing writer. It must not
      check-then-insert in a way that lets two rows through.
    - ``apply_reward`` is the ONLY writer of ``UserStats``. It marks the
      target completed and updates xp/streak/level in one atomic unit and
      applies a given target at most once.
    - Lesson completion is recorded once per ``(user_id, lesson_id)``,
      also through ``apply_reward``.

    TEAM: Replace the stub (InMemoryStore) with your database, or point
    DATABASE_URL at a database served by SqlStore.
    """

    # -- Daily sprints ------------------------------------------------------

    @abstractmethod
    async def get_cached_sprint(self, user_id: str, day: date) -> DailySprint | None:
        """Returns the user's sprint for ``day``, or None."""
        ...

    @abstractmethod
    async def get_sprint(self, sprint_id: str) -> DailySprint | None:
        """Returns a sprint by ID, or None."""
        ...

    @abstractmethod
    async def create_sprint(
        self,
        *,
        user_id: str,
        day: date,
        topic: str,
        difficulty: str,
        cards: list[SprintCard],
    ) -> DailySprint:
        """Inserts the day's sprint row.

        Raises:
            AlreadyExists: A row for ``(user_id, day)`` already exists.
        """
        ...

    # -- Single tasks -------------------------------------------------------

    @abstractmethod
    async def create_sprint_task(self, task: SprintTask) -> SprintTask:
        """Inserts a task, or returns the user's existing task with the same hash."""
        ...

    @abstractmethod
    async def get_sprint_task(self, task_id: str) -> SprintTask | None:
        """Returns a task by ID, or None."""
        ...

    # -- Curriculum ---------------------------------------------------------

    @abstractmethod
    async def insert_track(self, track: Track) -> Track:
        """Inserts one track row."""
        ...

    @abstractmethod
    async def insert_lesson(self, lesson: Lesson) -> Lesson:
        """Inserts one lesson row. Its track must exist."""
        ...

    @abstractmethod
    async def insert_question(self, question: Question) -> Question:
        """Inserts one question row. Its lesson must exist and have none yet."""
        ...

    @abstractmethod
    async def get_track(self, track_id: str) -> Track | None:
        ...

    @abstractmethod
    async def list_lessons(self, track_id: str) -> list[Lesson]:
        """Returns the track's lessons ordered by ``order``."""
        ...

    @abstractmethod
    async def get_lesson(self, lesson_id: str) -> Lesson | None:
        ...

    @abstractmethod
    async def get_question(self, lesson_id: str) -> Question | None:
        ...

    @abstractmethod
    async def set_track_published(self, track_id: str, published: bool) -> Track:
        """Toggles publish state.

        Raises:
            NotFound: No such track.
        """
        ...

    # -- Progression --------------------------------------------------------

    @abstractmethod
    async def get_user_stats(self, user_id: str) -> UserStats | None:
        """Returns the user's stats row, or None if never rewarded."""
        ...

    @abstractmethod
    async def get_lesson_progress(self, user_id: str, lesson_id: str) -> LessonProgress | None:
        """Returns the user's completion of a lesson, or None."""
        ...

    @abstractmethod
    async def apply_reward(
        self,
        *,
        user_id: str,
        target: RewardTarget,
        xp_delta: int,
        today: date,
    ) -> RewardResult:
        """Atomically rewards the completion of ``target``.

        In one unit: marks the sprint/task completed, stores the reward on
        it, adds ``xp_delta`` to xp, advances the streak, recomputes the
        level, sets ``last_active_date`` to ``today`` and, for sprints,
        increments ``total_sprints_completed``. Creates the stats row on
        first use.

        Lessons are shared curriculum rows, so a lesson target instead
        records a LessonProgress row keyed by ``(user_id, lesson_id)``;
        that key is what makes the reward at-most-once.

        Raises:
            NotFound: Target missing, or a sprint/task owned by another
                user.
            AlreadyCompleted: Target was already rewarded; carries the
                stored result. Stats are untouched.
        """
        ...
