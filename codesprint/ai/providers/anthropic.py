"""Anthropic Claude provider using the anthropic SDK.

Implements the AIProvider contract for Anthropic's Claude model family
via the Messages API. SDK retries are disabled; the orchestrator owns the
single retry.

Tier 2 service — imports from base.py (Tier 1) + anthropic SDK.
"""

import logging

import anthropic

from codesprint.ai.providers.base import AIProvider, ModelConfig, UsageInfo
from codesprint.errors import ProviderRejected, ProviderUnavailable

logger = logging.getLogger(__name__)

_DEFAULT_TEMPERATURE = 0.7


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider using the anthropic SDK.

    Args:
        api_key: Anthropic API key for Claude access.
    """

    def __init__(self, api_key: str) -> None:
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            max_retries=0,
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
            ProviderUnavailable: Connection failure or API status error.
            ProviderRejected: Refusal or a response with no text blocks.
        """
        if model_config.thinking_budget > 0:
            logger.debug(
                "thinking_budget=%d ignored for Anthropic provider",
                model_config.thinking_budget,
            )

        try:
            response = await self._client.messages.create(
                model=model_config.model_id,
                system=system_prompt,
                messages=messages,
                max_tokens=model_config.max_output_tokens,
                temperature=_DEFAULT_TEMPERATURE,
            )
        except anthropic.APIStatusError as exc:
            logger.warning("Anthropic API error %d", exc.status_code)
            raise ProviderUnavailable(f"Anthropic API error {exc.status_code}") from exc
        except anthropic.APIConnectionError as exc:
            logger.warning("Anthropic connection error: %s", exc)
            raise ProviderUnavailable("Anthropic connection error") from exc

        if response.stop_reason == "refusal":
            raise ProviderRejected("Anthropic refused the request")

        # Concatenate text from all text content blocks
        parts_text = []
        for block in response.content:
            if block.type == "text":
                parts_text.append(block.text)

        full_text = "".join(parts_text)
        if not full_text.strip():
            raise ProviderRejected("Anthropic returned no text")

        usage = UsageInfo(
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
        )
        return full_text, usage
