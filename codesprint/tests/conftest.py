"""Shared test fixtures for the sprint engine.

Factory-pattern fixtures that return callables accepting **overrides.

Fixtures:
    mock_provider: Factory for MockProvider instances
    make_card_dict: Factory for raw provider card dicts
    make_sprint_text: Factory for provider sprint payloads (JSON text)
    make_track_text: Factory for provider track payloads (JSON text)
    make_orchestrator: Factory wiring a full engine over an InMemoryStore
"""

import json
from datetime import date
from typing import Any

import pytest

from codesprint.ai.generation import GenerationClient
from codesprint.ai.providers.mock import MockProvider
from codesprint.content.store import ContentStore
from codesprint.hooks.database import InMemoryStore
from codesprint.models import MOCK_MODEL_CONFIG
from codesprint.progression.engine import ProgressionEngine
from codesprint.sprint.orchestrator import SprintOrchestrator

TODAY = date(2026, 3, 10)


# ---------------------------------------------------------------------------
# MockProvider factory
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_provider():
    """Returns a factory function for creating MockProvider instances."""

    def _make(**kwargs) -> MockProvider:
        return MockProvider(**kwargs)

    return _make


# ---------------------------------------------------------------------------
# Provider payload factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_card_dict():
    """Returns a factory for a valid raw quiz card as a provider emits it."""

    def _make(**overrides) -> dict[str, Any]:
        card = {
            "type": "quiz",
            "title": "Tuples",
            "content": "Are tuples mutable?",
            "options": ["Yes", "No"],
            "correctAnswer": 1,
            "explanation": "Tuples are immutable.",
        }
        card.update(overrides)
        return card

    return _make


@pytest.fixture
def make_sprint_text(make_card_dict):
    """Returns a factory for a JSON array of ``count`` valid cards."""

    def _make(count: int = 3) -> str:
        return json.dumps(
            [make_card_dict(title=f"Card {i}") for i in range(1, count + 1)]
        )

    return _make


@pytest.fixture
def make_track_text():
    """Returns a factory for a valid ``{track, lessons}`` payload."""

    def _make(lesson_count: int = 2, **track_overrides) -> str:
        track = {
            "title": "Rust Systems",
            "description": "Ownership and borrowing.",
            "difficulty": "INTERMEDIATE",
            "icon": "cpu",
        }
        track.update(track_overrides)
        lessons = [
            {
                "title": f"Lesson {i}",
                "order": i,
                "xp_reward": 40,
                "content": {"text": f"Text {i}", "code": "let x = 1;"},
                "quiz": {
                    "question": f"Question {i}?",
                    "options": ["A", "B", "C"],
                    "answer": 2,
                    "explanation": "C it is.",
                },
            }
            for i in range(1, lesson_count + 1)
        ]
        return json.dumps({"track": track, "lessons": lessons})

    return _make


# ---------------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------------


@pytest.fixture
def make_orchestrator():
    """Returns a factory wiring orchestrator, engine and store together.

    Returns ``(orchestrator, db, sprint_provider, track_provider)``. The
    clock is pinned to TODAY unless ``today`` is given.
    """

    def _make(
        sprint_provider: MockProvider | None = None,
        track_provider: MockProvider | None = None,
        db: InMemoryStore | None = None,
        today: date = TODAY,
        **kwargs,
    ):
        db = db or InMemoryStore()
        sprint_provider = sprint_provider or MockProvider()
        track_provider = track_provider or MockProvider()
        progression = ProgressionEngine(db, today_fn=lambda: today)
        orchestrator = SprintOrchestrator(
            ContentStore(db),
            progression,
            GenerationClient(sprint_provider, MOCK_MODEL_CONFIG, timeout_seconds=1.0),
            GenerationClient(track_provider, MOCK_MODEL_CONFIG, timeout_seconds=1.0),
            today_fn=lambda: today,
            **kwargs,
        )
        return orchestrator, db, sprint_provider, track_provider

    return _make
