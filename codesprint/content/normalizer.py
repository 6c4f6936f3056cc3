"""Content normalizer — provider text to canonical sprint cards and tracks.

Provider output is untrusted and unversioned. This module turns it into
``SprintCard`` lists and ``TrackDraft`` objects, or fails with a named
error. Callers never receive partially-invalid content.

Pipeline for sprints:
    1. Strip a leading/trailing markdown code fence.
    2. Parse JSON (``MalformedContent`` on failure).
    3. Detect the payload shape with an ordered list of matchers.
    4. Coerce each candidate into a ``SprintCard``; drop the ones that fail.
    5. ``EmptyContent`` if nothing survived.

Tracks follow steps 1-2, then validate track-level fields and require
every lesson to carry exactly one answerable question.

Tier 2 service: imports from schemas (T1) and errors (T1).
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from codesprint.errors import EmptyContent, MalformedContent
from codesprint.schemas import (
    DIFFICULTIES,
    LessonContent,
    LessonDraft,
    QuestionDraft,
    SprintCard,
    TrackDraft,
)

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?[ \t]*```$")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")

_TYPE_ALIASES: dict[str, str] = {
    "quiz": "quiz",
    "mcq": "quiz",
    "multiple_choice": "quiz",
    "multiple-choice": "quiz",
    "true_false": "quiz",
    "true-false": "quiz",
    "truefalse": "quiz",
    "code": "code",
    "coding": "code",
    "info": "info",
    "text": "info",
    "lesson": "info",
}

_TRUE_FALSE_OPTIONS = ["True", "False"]


# ---------------------------------------------------------------------------
# Raw text → JSON
# ---------------------------------------------------------------------------


def strip_fences(text: str) -> str:
    """Removes one leading and one trailing markdown code fence, if present."""
    stripped = text.strip()
    stripped = _FENCE_OPEN_RE.sub("", stripped, count=1)
    stripped = _FENCE_CLOSE_RE.sub("", stripped, count=1)
    return stripped.strip()


def parse_payload(text: str) -> Any:
    """Parses provider text as JSON after fence stripping.

    Raises:
        MalformedContent: Empty text or invalid JSON.
    """
    body = strip_fences(text)
    if not body:
        raise MalformedContent("Provider returned an empty body.")
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise MalformedContent(
            f"Provider output is not valid JSON (line {exc.lineno}, column {exc.colno})."
        ) from exc


# ---------------------------------------------------------------------------
# Shape detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ShapeMatch:
    """Which matcher accepted the payload, and the candidate items it yielded."""

    shape: str
    items: list[Any]


def _match_array(payload: Any) -> list[Any] | None:
    return payload if isinstance(payload, list) else None


def _match_content(payload: Any) -> list[Any] | None:
    if isinstance(payload, dict) and isinstance(payload.get("content"), list):
        return payload["content"]
    return None


def _match_tasks(payload: Any) -> list[Any] | None:
    if isinstance(payload, dict) and isinstance(payload.get("tasks"), list):
        return payload["tasks"]
    return None


def _match_object_values(payload: Any) -> list[Any] | None:
    if not isinstance(payload, dict):
        return None
    values = [value for value in payload.values() if isinstance(value, dict)]
    return values or None


def _match_wrapped_array(payload: Any) -> list[Any] | None:
    # {"sprint": [...]}: a single list under an unpredictable key.
    if not isinstance(payload, dict):
        return None
    lists = [value for value in payload.values() if isinstance(value, list)]
    return lists[0] if len(lists) == 1 else None


_SHAPE_MATCHERS: tuple[tuple[str, Callable[[Any], list[Any] | None]], ...] = (
    ("array", _match_array),
    ("content", _match_content),
    ("tasks", _match_tasks),
    ("object_values", _match_object_values),
    ("wrapped_array", _match_wrapped_array),
)


def detect_shape(payload: Any) -> ShapeMatch:
    """Runs the shape matchers in order and returns the first hit.

    Raises:
        MalformedContent: Payload is a JSON scalar.
        EmptyContent: Payload is an object none of the matchers accept.
    """
    if not isinstance(payload, (list, dict)):
        raise MalformedContent(
            f"Unsupported top-level JSON type: {type(payload).__name__}."
        )
    for shape, matcher in _SHAPE_MATCHERS:
        items = matcher(payload)
        if items is not None:
            return ShapeMatch(shape=shape, items=items)
    raise EmptyContent("No card candidates found in provider output.")


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_text(raw: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _text(raw.get(key))
        if value is not None:
            return value
    return None


def _options(value: Any) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list) or not value:
        raise ValueError("options must be a non-empty list")
    result = []
    for option in value:
        if isinstance(option, bool) or not isinstance(option, (str, int, float)):
            raise ValueError(f"unsupported option value {option!r}")
        result.append(str(option).strip())
    return result


def resolve_answer_index(value: Any, options: list[str]) -> int | None:
    """Maps the many ways providers express a correct answer to an index.

    Accepts an int, a numeric string, the option text itself, a letter
    label ("B"), or a boolean for True/False option lists. Returns None if
    nothing matches; range checking is left to the schema.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        lowered = [option.lower() for option in options]
        target = "true" if value else "false"
        return lowered.index(target) if target in lowered else None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if candidate.lstrip("-").isdigit():
        return int(candidate)
    for index, option in enumerate(options):
        if option.lower() == candidate.lower():
            return index
    if len(candidate) == 1 and candidate.isalpha():
        index = ord(candidate.upper()) - ord("A")
        if index < len(options):
            return index
    return None


def _card_type(raw: dict[str, Any]) -> tuple[str, bool]:
    """Returns (canonical type, is_true_false)."""
    declared = raw.get("type")
    if declared is None:
        if raw.get("options") is not None:
            return "quiz", False
        if raw.get("codeSnippet") or raw.get("code_snippet"):
            return "code", False
        return "info", False
    key = str(declared).strip().lower()
    if key not in _TYPE_ALIASES:
        raise ValueError(f"unknown card type {declared!r}")
    return _TYPE_ALIASES[key], key.replace("-", "_") in ("true_false", "truefalse")


def coerce_card(raw: Any) -> SprintCard:
    """Builds a SprintCard from one provider item.

    Raises:
        ValueError: The item cannot be made into a valid card (pydantic's
            ValidationError is a ValueError subclass).
    """
    if not isinstance(raw, dict):
        raise ValueError(f"card must be an object, got {type(raw).__name__}")

    card_type, true_false = _card_type(raw)
    options = _options(raw.get("options"))
    if options is None and true_false:
        options = list(_TRUE_FALSE_OPTIONS)

    answer_keys = ("correctAnswer", "correct_answer")
    if card_type == "quiz":
        answer_keys += ("answer",)
    raw_answer = next((raw[key] for key in answer_keys if raw.get(key) is not None), None)
    correct = resolve_answer_index(raw_answer, options) if options else None

    if card_type != "quiz" and (
        options is None or correct is None or not 0 <= correct < len(options)
    ):
        # Options are optional outside quizzes; keep the card, drop the bad pair.
        options, correct = None, None

    return SprintCard(
        title=_first_text(raw, "title", "topic") or "",
        content=_first_text(raw, "content", "question", "text", "description") or "",
        type=card_type,
        options=options,
        correct_answer=correct,
        explanation=_first_text(raw, "explanation"),
        code_snippet=_first_text(raw, "codeSnippet", "code_snippet", "code"),
        answer=_first_text(raw, "answer") if card_type == "code" else None,
    )


# ---------------------------------------------------------------------------
# Sprint normalization
# ---------------------------------------------------------------------------


def normalize_cards(items: list[Any]) -> list[SprintCard]:
    """Coerces candidates into cards, dropping invalid ones, order preserved.

    Raises:
        EmptyContent: No candidate produced a valid card.
    """
    cards: list[SprintCard] = []
    for position, raw in enumerate(items):
        try:
            cards.append(coerce_card(raw))
        except ValueError as exc:
            logger.debug("Dropping card %d: %s", position, exc)
    if not cards:
        raise EmptyContent(f"None of the {len(items)} card candidates were valid.")
    if len(cards) < len(items):
        logger.info("Dropped %d of %d invalid cards", len(items) - len(cards), len(items))
    return cards


def normalize_sprint(text: str) -> list[SprintCard]:
    """Full sprint pipeline: raw provider text → non-empty list of valid cards.

    Raises:
        MalformedContent: Not JSON, or a JSON scalar.
        EmptyContent: No valid cards in the payload.
    """
    match = detect_shape(parse_payload(text))
    cards = normalize_cards(match.items)
    logger.debug("Normalized %d cards from %s shape", len(cards), match.shape)
    return cards


# ---------------------------------------------------------------------------
# Track normalization
# ---------------------------------------------------------------------------


def slugify(title: str) -> str:
    """URL slug from a title plus a short unique suffix."""
    base = _SLUG_STRIP_RE.sub("-", title.lower()).strip("-") or "track"
    return f"{base[:48].rstrip('-')}-{uuid4().hex[:6]}"


def _difficulty(value: Any, default: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    candidate = str(value).strip().upper()
    if candidate not in DIFFICULTIES:
        raise MalformedContent(f"Unknown track difficulty {value!r}.")
    return candidate


def _lesson_question(raw: dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw.get("quiz"), dict):
        return raw["quiz"]
    if isinstance(raw.get("question"), dict):
        return raw["question"]
    questions = raw.get("questions")
    if isinstance(questions, list):
        if len(questions) != 1 or not isinstance(questions[0], dict):
            raise ValueError(f"lesson must have exactly one question, got {len(questions)}")
        return questions[0]
    raise ValueError("lesson has no question")


def coerce_question(raw: dict[str, Any]) -> QuestionDraft:
    options = _options(raw.get("options"))
    if options is None:
        raise ValueError("question has no options")
    raw_answer = next(
        (raw[key] for key in ("answer", "correctAnswer", "correct_answer") if raw.get(key) is not None),
        None,
    )
    answer = resolve_answer_index(raw_answer, options)
    if answer is None:
        raise ValueError(f"unresolvable answer {raw_answer!r}")
    is_true_false = [option.lower() for option in options] == ["true", "false"]
    return QuestionDraft(
        type="true_false" if is_true_false else "mcq",
        question=_first_text(raw, "question", "prompt", "content", "text") or "",
        options=options,
        answer=answer,
        explanation=_first_text(raw, "explanation"),
    )


def _lesson_content(value: Any) -> LessonContent:
    if isinstance(value, str):
        return LessonContent(text=value.strip())
    if isinstance(value, dict):
        return LessonContent(
            text=_first_text(value, "text", "body", "markdown") or "",
            code=_first_text(value, "code", "codeSnippet"),
        )
    if value is None:
        return LessonContent()
    raise ValueError(f"unsupported lesson content {type(value).__name__}")


def _xp_reward(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return 50


def coerce_lesson(raw: Any, order: int) -> LessonDraft:
    if not isinstance(raw, dict):
        raise ValueError(f"lesson must be an object, got {type(raw).__name__}")
    return LessonDraft(
        title=_first_text(raw, "title") or "",
        order=order,
        xp_reward=_xp_reward(raw.get("xp_reward")),
        content=_lesson_content(raw.get("content")),
        question=coerce_question(_lesson_question(raw)),
    )


def normalize_track(text: str, *, default_difficulty: str = "BEGINNER") -> TrackDraft:
    """Full track pipeline: raw provider text → validated TrackDraft.

    Invalid lessons are dropped and the survivors renumbered 1..N in
    provider order.

    Raises:
        MalformedContent: Not JSON, not an object, no title, bad difficulty,
            or no lessons list.
        EmptyContent: No lesson survived validation.
    """
    payload = parse_payload(text)
    if not isinstance(payload, dict):
        raise MalformedContent("Track payload must be a JSON object.")

    info = payload["track"] if isinstance(payload.get("track"), dict) else payload
    title = _first_text(info, "title")
    if title is None:
        raise MalformedContent("Track title is missing.")
    difficulty = _difficulty(
        info.get("difficulty", payload.get("difficulty")), default_difficulty
    )

    raw_lessons = payload.get("lessons", info.get("lessons"))
    if not isinstance(raw_lessons, list):
        raise MalformedContent("Track payload has no lessons list.")

    lessons: list[LessonDraft] = []
    for position, raw in enumerate(raw_lessons):
        try:
            lessons.append(coerce_lesson(raw, order=len(lessons) + 1))
        except ValueError as exc:
            logger.debug("Dropping lesson %d: %s", position, exc)
    if not lessons:
        raise EmptyContent(f"None of the {len(raw_lessons)} lessons were valid.")

    try:
        return TrackDraft(
            title=title,
            description=_first_text(info, "description") or "",
            slug=slugify(_first_text(info, "slug") or title),
            icon=_first_text(info, "icon") or "book",
            color_gradient=_first_text(info, "color_gradient", "colorGradient"),
            difficulty=difficulty,
            lessons=lessons,
        )
    except ValidationError as exc:
        raise MalformedContent(f"Track failed validation: {exc.error_count()} errors.") from exc
