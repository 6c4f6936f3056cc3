"""Base generation provider interface.

Defines the contract every provider implementation (Gemini, Anthropic,
Mock) must satisfy. A provider is an opaque text-in/text-out function with
no guarantee on the shape of the text it returns — the normalizer deals
with that.

Failure contract: implementations raise ``ProviderUnavailable`` for
transport/status errors and ``ProviderRejected`` for blocked or empty
output. Timeouts are enforced one level up by ``GenerationClient``.

Tier 1 leaf — imports only stdlib and codesprint.models (also Tier 1).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from codesprint.models import ModelConfig


@dataclass(frozen=True)
class UsageInfo:
    """Token usage from a completed generation call."""

    prompt_tokens: int
    completion_tokens: int


class AIProvider(ABC):
    """Abstract base for text generation providers."""

    @abstractmethod
    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        """Returns the full response text and usage info.

        Args:
            system_prompt: The system instruction.
            messages: Conversation as {"role": ..., "content": ...} dicts.
            model_config: Provider-specific configuration (model ID, limits).

        Returns:
            Tuple of (full response text, token usage information).

        Raises:
            ProviderUnavailable: Network, transport or upstream status error.
            ProviderRejected: Safety block, refusal or empty output.
        """
