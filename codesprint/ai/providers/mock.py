"""Mock generation provider for testing and development.

Deterministic, zero-cost AIProvider implementation that returns
configurable canned responses. Used by:
- Every orchestrator and API test (via conftest.mock_provider fixture)
- Development mode (AI_BACKEND=mock) for team members without API keys
- Reference implementation of the AIProvider contract

Tier 2 service — imports only from base.py (Tier 1).
"""

import json

from codesprint.ai.providers.base import AIProvider, ModelConfig, UsageInfo

_DEFAULT_USAGE = UsageInfo(prompt_tokens=10, completion_tokens=5)

DEMO_SPRINT_RESPONSE = json.dumps([
    {
        "type": "quiz",
        "title": "List comprehensions",
        "content": "What does [x * 2 for x in range(3)] evaluate to?",
        "options": ["[0, 2, 4]", "[2, 4, 6]", "[0, 1, 2]", "[1, 2, 3]"],
        "correctAnswer": 0,
        "explanation": "range(3) yields 0, 1, 2 and each is doubled.",
    },
    {
        "type": "info",
        "title": "f-strings",
        "content": "f-strings evaluate expressions inline: f'{value!r:>10}'.",
    },
    {
        "type": "code",
        "title": "Fix the default",
        "content": "The list grows across calls. Make each call start empty.",
        "codeSnippet": "def add(item, bucket=[]):\n    bucket.append(item)\n    return bucket",
        "answer": "def add(item, bucket=None):\n    bucket = [] if bucket is None else bucket",
        "explanation": "Default values are evaluated once, at definition time.",
    },
])

DEMO_TRACK_RESPONSE = json.dumps({
    "track": {
        "title": "Python Foundations",
        "description": "Core syntax and idioms.",
        "icon": "book",
        "difficulty": "BEGINNER",
    },
    "lessons": [
        {
            "title": "Variables",
            "order": 1,
            "xp_reward": 50,
            "content": {"text": "Names are bound to objects.", "code": "x = 1"},
            "quiz": {
                "question": "What does `x = 1` do?",
                "options": ["Binds x to 1", "Compares x to 1"],
                "answer": 0,
                "explanation": "A single = is assignment.",
            },
        },
    ],
})


class MockProvider(AIProvider):
    """Deterministic generation provider for testing.

    Returns canned responses in order; once exhausted, the last response
    repeats. Errors work the same way and take precedence per call.

    Args:
        responses: Text returned by successive complete() calls.
        usage: Token usage returned by complete(). Defaults to 10/5.
        error: If set, every call raises this.
        errors: Per-call errors; ``None`` entries let that call succeed.

    Attributes:
        calls: The keyword arguments of every complete() call, in order.
    """

    def __init__(
        self,
        responses: list[str] | None = None,
        usage: UsageInfo | None = None,
        error: Exception | None = None,
        errors: list[Exception | None] | None = None,
    ) -> None:
        self.responses = responses if responses is not None else [DEMO_SPRINT_RESPONSE]
        self.usage = usage or _DEFAULT_USAGE
        self.error = error
        self.errors = errors or []
        self.calls: list[dict] = []

    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        """Returns the next canned response and the configured usage.

        Raises the configured error for this call, if any.
        """
        index = len(self.calls)
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": messages,
                "model_config": model_config,
            }
        )

        if self.error is not None:
            raise self.error
        if index < len(self.errors) and self.errors[index] is not None:
            raise self.errors[index]

        text = self.responses[min(index, len(self.responses) - 1)]
        return text, self.usage
