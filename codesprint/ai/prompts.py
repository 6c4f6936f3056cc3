"""Prompt builder — deterministic instruction strings for content synthesis.

Two prompts: a daily sprint (a flat list of quiz/code/info cards) and a
full course track (one track, N lessons, one question each). Both embed a
literal output schema and instruct the provider to emit nothing else.

The per-language heuristics are content hints for the model only. Nothing
downstream parses them.

Same inputs always produce the same string.
"""

from __future__ import annotations

import re

from codesprint.errors import InvalidInput
from codesprint.schemas import DIFFICULTIES

_GENERATION_RULES = """\
STRICT GENERATION RULES:
1. Use MODERN standards only (e.g. JavaScript ES2023+, Python 3.11+, React 18+).
2. Do NOT generate questions based on deprecated features.
3. For quiz questions, the answer must be unambiguously correct today.
4. Avoid trick questions about features that changed recently."""

# Keys are matched as whole words of the lower-cased topic.
_LANGUAGE_HEURISTICS: dict[str, str] = {
    "python": "Prefer type hints, f-strings, pathlib, dataclasses and context managers.",
    "typescript": "Prefer strict types, union narrowing and readonly data.",
    "javascript": "Prefer const/let, arrow functions, async/await and optional chaining.",
    "react": "Use function components and hooks; no class components.",
    "java": "Target Java 17+: records, switch expressions, var where it reads well.",
    "go": "Handle every error explicitly; prefer small interfaces and goroutines with context.",
    "rust": "Favour ownership over cloning; use Result and the ? operator.",
    "sql": "Use ANSI joins, CTEs and parameterised queries.",
}

_GENERIC_HEURISTIC = "Favour idioms an experienced practitioner would use in production."
_WORD_RE = re.compile(r"[a-z0-9+#]+")

_SPRINT_SCHEMA = """\
[
  {
    "type": "quiz",
    "title": "Topic Name",
    "content": "Question text",
    "options": ["A", "B", "C", "D"],
    "correctAnswer": 0,
    "explanation": "Why A is correct."
  },
  {
    "type": "code",
    "title": "Coding Challenge",
    "content": "Problem description",
    "codeSnippet": "def buggy_function():\\n    pass",
    "answer": "Correct output or fixed code",
    "explanation": "Fix explanation"
  },
  {
    "type": "info",
    "title": "Concept",
    "content": "A short explanation worth remembering."
  }
]"""

_TRACK_SCHEMA = """\
{
  "track": {"title": "...", "description": "...", "difficulty": "BEGINNER|INTERMEDIATE|ADVANCED", "icon": "book"},
  "lessons": [{
    "title": "...", "order": 1, "xp_reward": 50,
    "content": {"text": "Lesson text...", "code": "Code snippet..."},
    "quiz": {"question": "...", "options": ["A", "B", "C"], "answer": 0, "explanation": "..."}
  }]
}"""


def _clean_topic(topic: str | None) -> str:
    if topic is None or not topic.strip():
        raise InvalidInput("Topic must not be blank.")
    return " ".join(topic.split())


def _clean_difficulty(difficulty: str) -> str:
    value = difficulty.strip().upper()
    if value not in DIFFICULTIES:
        raise InvalidInput(
            f"Unknown difficulty {difficulty!r}. Expected one of {', '.join(DIFFICULTIES)}."
        )
    return value


def _clean_count(count: int, what: str) -> int:
    if count < 1:
        raise InvalidInput(f"{what} count must be at least 1, got {count}.")
    return count


def language_heuristics(topic: str) -> str:
    """Returns the content hints for every language named in ``topic``."""
    words = set(_WORD_RE.findall(topic.lower()))
    hints = [hint for name, hint in _LANGUAGE_HEURISTICS.items() if name in words]
    return "\n".join(f"- {hint}" for hint in hints) or f"- {_GENERIC_HEURISTIC}"


def build_sprint_prompt(
    topic: str,
    difficulty: str = "INTERMEDIATE",
    card_count: int = 5,
) -> str:
    """Builds the daily sprint instruction.

    Args:
        topic: Learning domain, e.g. "Python" or "Rust ownership".
        difficulty: BEGINNER, INTERMEDIATE or ADVANCED (case-insensitive).
        card_count: Number of cards to ask for.

    Raises:
        InvalidInput: Blank topic, unknown difficulty, or count below 1.
    """
    topic = _clean_topic(topic)
    difficulty = _clean_difficulty(difficulty)
    card_count = _clean_count(card_count, "Card")
    return (
        f"Generate {card_count} distinct learning cards for {topic} "
        f"at {difficulty} level.\n"
        "Return ONLY a valid JSON array. No markdown fences. No comments. No prose.\n\n"
        f"{_GENERATION_RULES}\n\n"
        f"CONTENT HINTS FOR {topic.upper()}:\n"
        f"{language_heuristics(topic)}\n\n"
        "Every quiz card must have a non-empty options list and a zero-based "
        "correctAnswer index into it.\n\n"
        f"Format:\n{_SPRINT_SCHEMA}"
    )


def build_track_prompt(
    topic: str,
    difficulty: str = "BEGINNER",
    lesson_count: int = 5,
) -> str:
    """Builds the full-course track instruction.

    Args:
        topic: Subject of the track, e.g. "Rust Systems".
        difficulty: BEGINNER, INTERMEDIATE or ADVANCED (case-insensitive).
        lesson_count: Exact number of lessons to ask for.

    Raises:
        InvalidInput: Blank topic, unknown difficulty, or count below 1.
    """
    topic = _clean_topic(topic)
    difficulty = _clean_difficulty(difficulty)
    lesson_count = _clean_count(lesson_count, "Lesson")
    return (
        f'Create a micro-learning track for "{topic}" at {difficulty} level '
        "in RAW JSON format.\n"
        "Return ONLY the JSON object. No markdown fences. No prose.\n"
        f"Generate exactly {lesson_count} lessons. Each lesson has exactly one "
        "quiz with a zero-based answer index into its options.\n\n"
        f"{_GENERATION_RULES}\n\n"
        f"CONTENT HINTS FOR {topic.upper()}:\n"
        f"{language_heuristics(topic)}\n\n"
        f"Schema:\n{_TRACK_SCHEMA}"
    )
