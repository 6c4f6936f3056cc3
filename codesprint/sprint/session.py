"""Sprint session — explicit state machine for one play-through.

    INITIALIZING ──begin()──▶ ACTIVE ──close()──▶ SUMMARY (terminal)

The session holds the cards, the per-card answer trace and the ComboState.
None of it is durable: abandoning a session mid-ACTIVE leaves nothing to
clean up. Only the counts derived from the trace (questions_correct,
total_questions, combo.max) reach the progression engine.

Info cards are acknowledged, not scored: they neither break nor extend the
combo.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from codesprint.errors import InvalidInput
from codesprint.progression.formulas import combo_multiplier
from codesprint.schemas import RewardResult, SprintCard


class SessionState(str, Enum):
    INITIALIZING = "INITIALIZING"
    ACTIVE = "ACTIVE"
    SUMMARY = "SUMMARY"


@dataclass
class ComboState:
    """Consecutive-correct counter for one session.

    ``max`` never decreases within a session and is the only field that
    feeds the XP formula.
    """

    current: int = 0
    max: int = 0
    multiplier: float = 1.0

    def record(self, correct: bool) -> None:
        if correct:
            self.current += 1
            self.max = max(self.max, self.current)
            self.multiplier = combo_multiplier(self.current)
        else:
            self.current = 0
            self.multiplier = 1.0


@dataclass(frozen=True)
class CardOutcome:
    """One entry of the answer trace. ``correct`` is None for info cards."""

    index: int
    card_type: str
    correct: bool | None


@dataclass
class SprintSession:
    """One user's pass over a sprint's cards."""

    user_id: str
    state: SessionState = SessionState.INITIALIZING
    sprint_id: str | None = None
    cards: list[SprintCard] = field(default_factory=list)
    degraded: bool = False
    position: int = 0
    trace: list[CardOutcome] = field(default_factory=list)
    combo: ComboState = field(default_factory=ComboState)
    result: RewardResult | None = None

    # -- Transitions ---------------------------------------------------------

    def begin(self, sprint_id: str | None, cards: list[SprintCard], *, degraded: bool) -> None:
        """INITIALIZING → ACTIVE with the resolved cards."""
        self._require(SessionState.INITIALIZING)
        if not cards:
            raise InvalidInput("A session needs at least one card.")
        self.sprint_id = sprint_id
        self.cards = list(cards)
        self.degraded = degraded
        self.state = SessionState.ACTIVE

    def close(self, result: RewardResult | None) -> None:
        """ACTIVE → SUMMARY once every card has been handled."""
        self._require(SessionState.ACTIVE)
        if not self.is_finished:
            raise InvalidInput(
                f"Sprint not finished: {self.position} of {len(self.cards)} cards handled."
            )
        self.result = result
        self.state = SessionState.SUMMARY

    # -- Answers --------------------------------------------------------------

    @property
    def current_card(self) -> SprintCard | None:
        if self.state is not SessionState.ACTIVE or self.is_finished:
            return None
        return self.cards[self.position]

    def choose(self, option: int) -> bool:
        """Answers the current card by option index. Returns correctness."""
        card = self._current()
        if card.options is None or card.correct_answer is None:
            raise InvalidInput(f"Card {self.position} has no options to choose from.")
        if not 0 <= option < len(card.options):
            raise InvalidInput(f"Option {option} out of range.")
        return self.answer(option == card.correct_answer)

    def answer(self, correct: bool) -> bool:
        """Records a graded answer for the current scored card."""
        card = self._current()
        if not card.is_scored:
            raise InvalidInput(f"Card {self.position} is an info card; acknowledge it.")
        self.combo.record(correct)
        self._advance(card, correct)
        return correct

    def acknowledge(self) -> None:
        """Moves past the current info card."""
        card = self._current()
        if card.is_scored:
            raise InvalidInput(f"Card {self.position} needs an answer.")
        self._advance(card, None)

    # -- Derived counts -------------------------------------------------------

    @property
    def is_finished(self) -> bool:
        return bool(self.cards) and self.position >= len(self.cards)

    @property
    def questions_correct(self) -> int:
        return sum(1 for outcome in self.trace if outcome.correct)

    @property
    def total_questions(self) -> int:
        return sum(1 for outcome in self.trace if outcome.correct is not None)

    # -- Internals -----------------------------------------------------------

    def _require(self, state: SessionState) -> None:
        if self.state is not state:
            raise InvalidInput(f"Session is {self.state.value}, expected {state.value}.")

    def _current(self) -> SprintCard:
        self._require(SessionState.ACTIVE)
        card = self.current_card
        if card is None:
            raise InvalidInput("Every card has already been handled.")
        return card

    def _advance(self, card: SprintCard, correct: bool | None) -> None:
        self.trace.append(CardOutcome(index=self.position, card_type=card.type, correct=correct))
        self.position += 1
