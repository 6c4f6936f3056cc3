"""Sprint orchestrator — the only component the API layer calls.

Start:   cache hit? → return it. Otherwise build prompt → generate →
         normalize (one retry on provider or normalizer failure) → persist.
         When both attempts fail, the built-in fallback card is returned
         with ``degraded=True`` and nothing is persisted.
Finish:  hand the session's counts to the progression engine, once.
Tracks:  same generate → normalize pipeline with one retry, but no
         fallback: a track that cannot be synthesized is an error.

Tier 3 orchestration: imports services from ai/, content/, progression/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from codesprint.ai.generation import GenerationClient
from codesprint.ai.prompts import build_sprint_prompt, build_track_prompt
from codesprint.content.normalizer import normalize_sprint, normalize_track
from codesprint.content.store import ContentStore
from codesprint.errors import AlreadyExists, InvalidInput, NormalizationError, ProviderError
from codesprint.progression.engine import ProgressionEngine, utc_today
from codesprint.schemas import RewardResult, SprintCard, Track, TrackDraft
from codesprint.sprint.session import SessionState, SprintSession

logger = logging.getLogger(__name__)

_ATTEMPTS = 2

FALLBACK_CARDS: tuple[SprintCard, ...] = (
    SprintCard(
        title="System Offline",
        content="Content generation is unreachable right now. Try again later.",
        type="code",
        code_snippet="print('Offline')",
        options=["Retry"],
        correct_answer=0,
    ),
)


@dataclass(frozen=True)
class SprintStart:
    """What the caller gets back from start_sprint.

    ``sprint_id`` is None in degraded mode: fallback cards are never cached
    or rewarded.
    """

    sprint_id: str | None
    topic: str
    cards: list[SprintCard]
    degraded: bool
    cached: bool


class SprintOrchestrator:
    """Façade over synthesis, caching and progression.

    Args:
        content: Content store for sprints and tracks.
        progression: Progression engine for rewards.
        sprint_client: Generation client used for daily sprints.
        track_client: Generation client used for full tracks.
        default_topic: Topic used when the caller gives none.
        card_count: Cards requested per sprint.
        lesson_count: Lessons requested per track.
        today_fn: Returns the current calendar day.
    """

    def __init__(
        self,
        content: ContentStore,
        progression: ProgressionEngine,
        sprint_client: GenerationClient,
        track_client: GenerationClient,
        *,
        default_topic: str = "General",
        card_count: int = 5,
        lesson_count: int = 5,
        today_fn: Callable[[], date] = utc_today,
    ) -> None:
        self._content = content
        self._progression = progression
        self._sprint_client = sprint_client
        self._track_client = track_client
        self._default_topic = default_topic
        self._card_count = card_count
        self._lesson_count = lesson_count
        self._today = today_fn

    # -- Sprints --------------------------------------------------------------

    async def start_sprint(
        self,
        user_id: str,
        topic: str | None = None,
        difficulty: str = "INTERMEDIATE",
    ) -> SprintStart:
        """Returns today's sprint for the user, synthesizing it if needed.

        Never fails on provider or normalizer errors; those end in the
        degraded fallback.

        Raises:
            InvalidInput: Blank topic or unknown difficulty.
        """
        topic = self._default_topic if topic is None else topic
        prompt = build_sprint_prompt(topic, difficulty, self._card_count)
        topic = " ".join(topic.split())
        difficulty = difficulty.strip().upper()
        day = self._today()

        cached = await self._content.get_cached_sprint(user_id, day)
        if cached is not None:
            logger.info("Sprint cache hit for %s on %s", user_id, day)
            return SprintStart(cached.id, cached.topic, cached.cards, False, True)

        cards = await self._synthesize_cards(prompt, user_id)
        if cards is None:
            logger.warning(
                "Sprint synthesis failed for %s (topic=%r); serving fallback cards",
                user_id,
                topic,
            )
            return SprintStart(None, topic, list(FALLBACK_CARDS), True, False)

        try:
            sprint = await self._content.create_sprint(
                user_id=user_id, day=day, topic=topic, difficulty=difficulty, cards=cards
            )
        except AlreadyExists:
            logger.info("Lost sprint creation race for %s on %s; re-fetching", user_id, day)
            existing = await self._content.get_cached_sprint(user_id, day)
            if existing is None:
                raise
            return SprintStart(existing.id, existing.topic, existing.cards, False, True)
        return SprintStart(sprint.id, sprint.topic, sprint.cards, False, False)

    async def complete_sprint(
        self,
        user_id: str,
        sprint_id: str,
        *,
        questions_correct: int,
        total_questions: int,
        combo_max: int,
    ) -> RewardResult:
        return await self._progression.complete_sprint(
            user_id,
            sprint_id,
            questions_correct=questions_correct,
            total_questions=total_questions,
            combo_max=combo_max,
        )

    async def open_session(
        self,
        user_id: str,
        topic: str | None = None,
        difficulty: str = "INTERMEDIATE",
    ) -> SprintSession:
        """Resolves today's sprint and returns an ACTIVE session over it."""
        session = SprintSession(user_id=user_id)
        start = await self.start_sprint(user_id, topic, difficulty)
        session.begin(start.sprint_id, start.cards, degraded=start.degraded)
        return session

    async def finish_session(self, session: SprintSession) -> RewardResult | None:
        """Moves a finished session to SUMMARY, rewarding it at most once.

        Degraded sessions reach SUMMARY without a reward. Calling this on
        a session already in SUMMARY returns its stored result.
        """
        if session.state is SessionState.SUMMARY:
            return session.result
        if session.state is not SessionState.ACTIVE or not session.is_finished:
            raise InvalidInput(
                f"Session is {session.state.value} with "
                f"{session.position} of {len(session.cards)} cards handled."
            )
        result = None
        if session.sprint_id is not None:
            result = await self.complete_sprint(
                session.user_id,
                session.sprint_id,
                questions_correct=session.questions_correct,
                total_questions=session.total_questions,
                combo_max=session.combo.max,
            )
        session.close(result)
        return result

    async def _synthesize_cards(self, prompt: str, user_id: str) -> list[SprintCard] | None:
        for attempt in range(1, _ATTEMPTS + 1):
            try:
                text = await self._sprint_client.generate(
                    prompt, call_type="sprint", user_id=user_id
                )
                return normalize_sprint(text)
            except (ProviderError, NormalizationError) as exc:
                logger.warning(
                    "Sprint synthesis attempt %d/%d failed: %s: %s",
                    attempt,
                    _ATTEMPTS,
                    exc.code,
                    exc.message,
                )
        return None

    # -- Tracks ---------------------------------------------------------------

    async def synthesize_track(
        self,
        topic: str,
        difficulty: str = "BEGINNER",
        *,
        user_id: str = "-",
    ) -> Track:
        """Synthesizes and publishes a full track as an unpublished draft.

        Raises:
            InvalidInput: Blank topic or unknown difficulty.
            ProviderError | NormalizationError: Both attempts failed.
            PartialSynthesisFailure: Publishing stopped part-way.
        """
        prompt = build_track_prompt(topic, difficulty, self._lesson_count)
        draft = await self._synthesize_track_draft(prompt, difficulty.strip().upper(), user_id)
        return await self._content.publish_track(draft)

    async def _synthesize_track_draft(
        self, prompt: str, difficulty: str, user_id: str
    ) -> TrackDraft:
        async def attempt() -> TrackDraft:
            text = await self._track_client.generate(prompt, call_type="track", user_id=user_id)
            return normalize_track(text, default_difficulty=difficulty)

        try:
            return await attempt()
        except (ProviderError, NormalizationError) as exc:
            logger.warning("Track synthesis failed, retrying once: %s: %s", exc.code, exc.message)
        try:
            return await attempt()
        except (ProviderError, NormalizationError) as exc:
            logger.warning("Track synthesis retry failed: %s: %s", exc.code, exc.message)
            raise
