"""Offline generation provider — stands in when a real one cannot be built.

Every ``complete`` call raises ProviderUnavailable with the construction
error's message, so the orchestrator treats each generation as a failed
attempt and serves the degraded fallback instead of the app answering 503.

Tier 2 service — imports only from base.py (Tier 1) and codesprint.errors.
"""

from codesprint.ai.providers.base import AIProvider, ModelConfig, UsageInfo
from codesprint.errors import ProviderUnavailable


class UnavailableProvider(AIProvider):
    """AIProvider that always fails with ProviderUnavailable.

    Args:
        reason: Why the real provider could not be constructed.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason

    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        raise ProviderUnavailable(f"{model_config.provider} provider is offline: {self.reason}")
