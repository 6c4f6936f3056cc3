"""Google Gemini provider using the google-genai SDK.

Implements the AIProvider contract for Google's Gemini model family.
Requests a JSON response MIME type, filters thinking parts, and maps SDK
failures onto the engine's provider error taxonomy.

SDK retries are disabled: the orchestrator owns the single retry, so a
slow upstream cannot multiply latency behind its back.

Tier 2 service — imports from base.py (Tier 1) + google-genai SDK.
"""

import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from codesprint.ai.providers.base import AIProvider, ModelConfig, UsageInfo
from codesprint.errors import ProviderRejected, ProviderUnavailable

logger = logging.getLogger(__name__)

_DEFAULT_TEMPERATURE = 0.7
_BLOCKING_FINISH_REASONS = frozenset({"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"})


def _build_contents(messages: list[dict[str, str]]) -> list[types.Content]:
    """Converts provider-neutral message dicts to Gemini Content objects.

    Role mapping: "user" → "user", "assistant" → "model".
    """
    role_map = {"user": "user", "assistant": "model"}
    contents = []
    for msg in messages:
        role = role_map.get(msg["role"], msg["role"])
        contents.append(
            types.Content(
                parts=[types.Part(text=msg["content"])],
                role=role,
            )
        )
    return contents


def _build_config(
    system_prompt: str,
    model_config: ModelConfig,
) -> types.GenerateContentConfig:
    """Builds the GenerateContentConfig for a Gemini API call."""
    return types.GenerateContentConfig(
        system_instruction=system_prompt,
        temperature=_DEFAULT_TEMPERATURE,
        max_output_tokens=model_config.max_output_tokens,
        response_mime_type="application/json",
        thinking_config=types.ThinkingConfig(
            thinking_budget=model_config.thinking_budget,
        ),
    )


def _finish_reason_name(candidate: object) -> str:
    reason = getattr(candidate, "finish_reason", None)
    if reason is None:
        return ""
    return str(getattr(reason, "name", reason))


class GeminiProvider(AIProvider):
    """Gemini provider using the google-genai SDK.

    Args:
        api_key: Google API key for Gemini access.
    """

    def __init__(self, api_key: str) -> None:
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(
                retry_options=types.HttpRetryOptions(attempts=1),
            ),
        )

    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        """Returns the full response text and usage info.

        Raises:
            ProviderUnavailable: SDK status error or transport failure.
            ProviderRejected: Blocked prompt, safety stop, or no text.
        """
        contents = _build_contents(messages)
        config = _build_config(system_prompt, model_config)

        try:
            response = await self._client.aio.models.generate_content(
                model=model_config.model_id,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as exc:
            logger.warning("Gemini API error %s: %s", exc.code, exc.message)
            raise ProviderUnavailable(f"Gemini API error {exc.code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("Gemini transport error: %s", exc)
            raise ProviderUnavailable("Gemini transport error") from exc

        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise ProviderRejected(f"Gemini blocked the prompt: {feedback.block_reason}")

        # Extract text from all non-thinking parts
        parts_text = []
        blocked = False
        for candidate in response.candidates or []:
            if _finish_reason_name(candidate) in _BLOCKING_FINISH_REASONS:
                blocked = True
                continue
            if candidate.content is None or candidate.content.parts is None:
                continue
            for part in candidate.content.parts:
                if getattr(part, "thought", False):
                    continue
                if part.text is not None:
                    parts_text.append(part.text)

        full_text = "".join(parts_text)
        if not full_text.strip():
            reason = "safety filter" if blocked else "empty candidate"
            raise ProviderRejected(f"Gemini returned no usable text ({reason})")

        prompt_tokens = 0
        completion_tokens = 0
        if response.usage_metadata is not None:
            prompt_tokens = response.usage_metadata.prompt_token_count or 0
            completion_tokens = response.usage_metadata.candidates_token_count or 0

        return full_text, UsageInfo(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
