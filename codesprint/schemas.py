"""Core data models — shared Pydantic types for the sprint engine.

Sprint content, curriculum entities, user stats and API envelopes all flow
through these types.

This is a Tier 1 leaf module: it imports only from pydantic and the stdlib.
No project imports allowed — everything else imports from here.

Usage:
    from codesprint.schemas import SprintCard, DailySprint, UserStats
"""

from datetime import date, datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

Difficulty = Literal["BEGINNER", "INTERMEDIATE", "ADVANCED"]
DIFFICULTIES: tuple[str, ...] = ("BEGINNER", "INTERMEDIATE", "ADVANCED")

CardType = Literal["quiz", "code", "info"]


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class User(BaseModel):
    """Identity model returned by the auth layer."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["member", "moderator", "admin"]
    name: str


# ---------------------------------------------------------------------------
# Sprint content
# ---------------------------------------------------------------------------


class SprintCard(BaseModel):
    """One learning card. Immutable once generated.

    Serialized with camelCase aliases (``correctAnswer``, ``codeSnippet``)
    because that is the shape providers emit and the mobile client reads.
    A quiz card always has non-empty ``options`` and a ``correct_answer``
    that indexes into them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    type: CardType
    options: list[str] | None = None
    correct_answer: int | None = Field(default=None, alias="correctAnswer")
    explanation: str | None = None
    code_snippet: str | None = Field(default=None, alias="codeSnippet")
    answer: str | None = None

    @model_validator(mode="after")
    def _check_answer_index(self) -> "SprintCard":
        if self.options is not None and not self.options:
            raise ValueError("options must be non-empty when present")
        if self.type == "quiz" and (self.options is None or self.correct_answer is None):
            raise ValueError("quiz cards need options and correctAnswer")
        if self.correct_answer is not None:
            if self.options is None:
                raise ValueError("correctAnswer without options")
            if not 0 <= self.correct_answer < len(self.options):
                raise ValueError(
                    f"correctAnswer {self.correct_answer} out of range "
                    f"for {len(self.options)} options"
                )
        return self

    @property
    def is_scored(self) -> bool:
        """Info cards are read, not answered."""
        return self.type != "info"


class RewardResult(BaseModel):
    """Outcome of one applied reward. Stored on the rewarded row."""

    model_config = ConfigDict(frozen=True)

    xp_earned: int
    new_xp: int
    new_streak: int
    new_level: int


class DailySprint(BaseModel):
    """Cached sprint for one user and one calendar day.

    At most one row exists per ``(user_id, day)``.
    """

    id: str = Field(default_factory=_new_id)
    user_id: str
    day: date
    topic: str
    difficulty: Difficulty = "INTERMEDIATE"
    cards: list[SprintCard]
    is_completed: bool = False
    xp_earned: int = 0
    reward: RewardResult | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class SprintTask(BaseModel):
    """A single standalone task, completable (and rewarded) exactly once."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    task_content: dict[str, Any]
    language: str
    difficulty: Difficulty = "INTERMEDIATE"
    task_hash: str
    is_completed: bool = False
    reward: RewardResult | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class RewardTarget(BaseModel):
    """Identifies the row whose completion earns a reward."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["sprint", "task", "lesson"]
    id: str


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------


class UserStats(BaseModel):
    """Authoritative progression row. Written only by ``apply_reward``."""

    user_id: str
    xp: int = 0
    level: int = 1
    streak_days: int = 0
    last_active_date: date | None = None
    total_sprints_completed: int = 0


# ---------------------------------------------------------------------------
# Curriculum: drafts (normalizer output) and persisted rows
# ---------------------------------------------------------------------------


class QuestionDraft(BaseModel):
    """The single question attached to a synthesized lesson."""

    model_config = ConfigDict(frozen=True)

    type: Literal["mcq", "true_false"] = "mcq"
    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=1)
    answer: int
    explanation: str | None = None

    @model_validator(mode="after")
    def _check_answer_index(self) -> "QuestionDraft":
        if not 0 <= self.answer < len(self.options):
            raise ValueError(
                f"answer {self.answer} out of range for {len(self.options)} options"
            )
        return self


class LessonContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    code: str | None = None


class LessonDraft(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    order: int
    xp_reward: int = 50
    content: LessonContent
    question: QuestionDraft


class TrackDraft(BaseModel):
    """A fully validated track ready for publishing."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    description: str = ""
    slug: str
    icon: str = "book"
    color_gradient: str | None = None
    difficulty: Difficulty
    lessons: list[LessonDraft] = Field(min_length=1)


class Track(BaseModel):
    id: str = Field(default_factory=_new_id)
    slug: str
    title: str
    description: str = ""
    icon: str = "book"
    color_gradient: str | None = None
    difficulty: Difficulty
    is_published: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class Lesson(BaseModel):
    id: str = Field(default_factory=_new_id)
    track_id: str
    title: str
    content: LessonContent
    order: int
    xp_reward: int = 50


class Question(BaseModel):
    id: str = Field(default_factory=_new_id)
    lesson_id: str
    type: Literal["mcq", "true_false"] = "mcq"
    question: str
    options: list[str]
    answer: int
    explanation: str | None = None


class LessonProgress(BaseModel):
    """A user's completion of one lesson. At most one per (user_id, lesson_id)."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    lesson_id: str
    reward: RewardResult
    completed_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# API envelope
# ---------------------------------------------------------------------------


class ApiError(BaseModel):
    """Error detail inside ApiResponse.error.

    code is an uppercase string like "INVALID_INPUT" or "NOT_FOUND".
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class ApiResponse(BaseModel):
    """Universal response envelope — every API endpoint returns this shape."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    data: Any | None = None
    error: ApiError | None = None
