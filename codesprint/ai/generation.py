"""Generation client — one bounded provider call per prompt.

Wraps an AIProvider with the configured model and a hard timeout, and logs
usage for every successful call. Never retries: the orchestrator decides
whether a failure deserves its single retry.

Tier 2 service: imports from providers/base (T1), usage (T2), errors (T1).
"""

from __future__ import annotations

import asyncio
import logging
import time

from codesprint.ai.providers.base import AIProvider
from codesprint.ai.usage import log_ai_call
from codesprint.errors import ProviderTimeout, ProviderUnavailable, SprintEngineError
from codesprint.models import ModelConfig

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You generate structured technical learning content. "
    "Respond with raw JSON only."
)


class GenerationClient:
    """Sends a prompt to the provider and returns its raw text.

    Args:
        provider: Concrete provider (MockProvider in tests).
        model_config: Model to call.
        timeout_seconds: Upper bound for a single call.
    """

    def __init__(
        self,
        provider: AIProvider,
        model_config: ModelConfig,
        *,
        timeout_seconds: float,
    ) -> None:
        self._provider = provider
        self._model_config = model_config
        self._timeout = timeout_seconds

    @property
    def model_config(self) -> ModelConfig:
        return self._model_config

    async def generate(self, prompt: str, *, call_type: str, user_id: str = "-") -> str:
        """Returns the provider's raw response text for ``prompt``.

        Args:
            prompt: The full instruction string from the prompt builder.
            call_type: "sprint" or "track", for usage logging.
            user_id: Requesting user, for usage logging.

        Raises:
            ProviderTimeout: The call did not finish within the timeout.
            ProviderUnavailable: Propagated from the provider, or wrapping
                any other exception the provider raised.
            ProviderRejected: Propagated from the provider.
        """
        start = time.monotonic()
        try:
            text, usage = await asyncio.wait_for(
                self._provider.complete(
                    system_prompt=_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                    model_config=self._model_config,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Generation timed out after %.1fs (model=%s, call=%s)",
                self._timeout,
                self._model_config.model_id,
                call_type,
            )
            raise ProviderTimeout(
                f"Generation exceeded {self._timeout:g}s"
            ) from exc
        except SprintEngineError:
            raise
        except Exception as exc:
            # SDK validation errors and the like become a provider failure.
            logger.warning(
                "Provider raised %s (model=%s, call=%s)",
                type(exc).__name__,
                self._model_config.model_id,
                call_type,
            )
            raise ProviderUnavailable(
                f"Provider call failed: {type(exc).__name__}: {exc}"
            ) from exc

        log_ai_call(
            model_id=self._model_config.model_id,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            latency_ms=(time.monotonic() - start) * 1000,
            call_type=call_type,
            user_id=user_id,
        )
        return text
