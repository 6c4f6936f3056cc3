"""Error taxonomy for the sprint engine.

Every failure the engine can signal is a named subclass of
``SprintEngineError`` carrying a stable uppercase ``code`` (same vocabulary
as ``ApiError.code``). The API layer maps these to response envelopes; the
orchestrator uses the class hierarchy to decide what is retried.

    InvalidInput          caller error, never retried
    NotFound              unknown or foreign sprint/task/track id
    ProviderError         transient; retried once, then degraded fallback
      ProviderUnavailable
      ProviderRejected
      ProviderTimeout
    NormalizationError    same retry-then-fallback policy as ProviderError
      MalformedContent
      EmptyContent
    AlreadyExists         benign; re-fetch the cached sprint
    PartialSynthesisFailure  surfaced for draft review, never auto-repaired
    AlreadyCompleted      idempotency short-circuit, carries prior result

Tier 1 leaf module: no project imports outside TYPE_CHECKING.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codesprint.schemas import RewardResult


class SprintEngineError(Exception):
    """Base class for all engine errors.

    Attributes:
        code: Stable uppercase error code for API envelopes.
        message: Human-readable description.
    """

    code = "ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidInput(SprintEngineError):
    """The caller sent something unusable (blank topic, negative counts)."""

    code = "INVALID_INPUT"


class NotFound(SprintEngineError):
    """A referenced sprint, task or track does not exist for this user."""

    code = "NOT_FOUND"


# ---------------------------------------------------------------------------
# Generation provider failures
# ---------------------------------------------------------------------------


class ProviderError(SprintEngineError):
    """The generation provider did not return usable text."""

    code = "PROVIDER_ERROR"


class ProviderUnavailable(ProviderError):
    """Network, transport or upstream status failure."""

    code = "PROVIDER_UNAVAILABLE"


class ProviderRejected(ProviderError):
    """Safety block, refusal or an empty candidate."""

    code = "PROVIDER_REJECTED"


class ProviderTimeout(ProviderError):
    """The call exceeded the configured generation timeout."""

    code = "PROVIDER_TIMEOUT"


# ---------------------------------------------------------------------------
# Normalizer failures
# ---------------------------------------------------------------------------


class NormalizationError(SprintEngineError):
    """Provider text could not be mapped onto the canonical schema."""

    code = "NORMALIZATION_ERROR"


class MalformedContent(NormalizationError):
    """Not JSON, or JSON of an unusable top-level shape."""

    code = "MALFORMED_CONTENT"


class EmptyContent(NormalizationError):
    """Parsed fine, but nothing survived validation."""

    code = "EMPTY_CONTENT"


# ---------------------------------------------------------------------------
# Store outcomes
# ---------------------------------------------------------------------------


class AlreadyExists(SprintEngineError):
    """A concurrent call already created today's sprint for this user."""

    code = "ALREADY_EXISTS"


class PartialSynthesisFailure(SprintEngineError):
    """Track publishing failed after some rows were committed.

    The committed rows are left in place as an unpublished draft.

    Attributes:
        track_id: The committed track row.
        lessons_committed: Number of lessons (with their questions) that
            were fully written before the failure.
    """

    code = "PARTIAL_SYNTHESIS"

    def __init__(self, message: str, *, track_id: str, lessons_committed: int) -> None:
        self.track_id = track_id
        self.lessons_committed = lessons_committed
        super().__init__(message)


class AlreadyCompleted(SprintEngineError):
    """The sprint or task was already rewarded.

    Attributes:
        result: The reward recorded by the first completion.
    """

    code = "ALREADY_COMPLETED"

    def __init__(self, message: str, *, result: RewardResult) -> None:
        self.result = result
        super().__init__(message)
