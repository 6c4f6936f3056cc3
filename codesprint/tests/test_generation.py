"""Tests for codesprint.ai.generation and usage logging."""

import asyncio
import logging

import pytest

from codesprint.ai.generation import GenerationClient
from codesprint.ai.providers.base import AIProvider, ModelConfig, UsageInfo
from codesprint.ai.providers.offline import UnavailableProvider
from codesprint.ai.usage import log_ai_call
from codesprint.errors import ProviderRejected, ProviderTimeout, ProviderUnavailable
from codesprint.models import MOCK_MODEL_CONFIG


class _SlowProvider(AIProvider):
    async def complete(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        model_config: ModelConfig,
    ) -> tuple[str, UsageInfo]:
        await asyncio.sleep(5)
        return "[]", UsageInfo(prompt_tokens=0, completion_tokens=0)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_provider_text(self, mock_provider) -> None:
        provider = mock_provider(responses=["[1]"])
        client = GenerationClient(provider, MOCK_MODEL_CONFIG, timeout_seconds=1)
        assert await client.generate("prompt", call_type="sprint") == "[1]"

    @pytest.mark.asyncio
    async def test_prompt_sent_as_single_user_message(self, mock_provider) -> None:
        provider = mock_provider()
        client = GenerationClient(provider, MOCK_MODEL_CONFIG, timeout_seconds=1)
        await client.generate("Make cards", call_type="sprint")
        call = provider.calls[0]
        assert call["messages"] == [{"role": "user", "content": "Make cards"}]
        assert call["model_config"] is MOCK_MODEL_CONFIG
        assert "JSON" in call["system_prompt"]

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_timeout(self) -> None:
        client = GenerationClient(_SlowProvider(), MOCK_MODEL_CONFIG, timeout_seconds=0.01)
        with pytest.raises(ProviderTimeout, match="0.01s"):
            await client.generate("prompt", call_type="sprint")

    @pytest.mark.asyncio
    async def test_provider_errors_propagate_without_retry(self, mock_provider) -> None:
        provider = mock_provider(error=ProviderRejected("blocked"))
        client = GenerationClient(provider, MOCK_MODEL_CONFIG, timeout_seconds=1)
        with pytest.raises(ProviderRejected):
            await client.generate("prompt", call_type="sprint")
        assert len(provider.calls) == 1

    @pytest.mark.parametrize("error", [ValueError("bad schema"), KeyError("candidates")])
    @pytest.mark.asyncio
    async def test_foreign_exception_becomes_provider_unavailable(
        self, mock_provider, error: Exception, caplog: pytest.LogCaptureFixture
    ) -> None:
        """SDK errors outside the engine taxonomy surface as ProviderUnavailable."""
        client = GenerationClient(mock_provider(error=error), MOCK_MODEL_CONFIG, timeout_seconds=1)
        with caplog.at_level(logging.WARNING, logger="codesprint.ai.generation"):
            with pytest.raises(ProviderUnavailable) as exc_info:
                await client.generate("prompt", call_type="sprint")
        assert exc_info.value.__cause__ is error
        assert type(error).__name__ in exc_info.value.message
        assert "Provider raised" in caplog.text

    @pytest.mark.asyncio
    async def test_usage_logged(self, mock_provider, caplog: pytest.LogCaptureFixture) -> None:
        client = GenerationClient(mock_provider(), MOCK_MODEL_CONFIG, timeout_seconds=1)
        with caplog.at_level(logging.INFO, logger="codesprint.ai.usage"):
            await client.generate("prompt", call_type="track", user_id="u7")
        record = next(r for r in caplog.records if r.name == "codesprint.ai.usage")
        assert record.call_type == "track"
        assert record.user_id == "u7"
        assert record.model_id == "mock-v1"
        assert record.prompt_tokens == 10


class TestLogAiCall:
    def test_extra_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="codesprint.ai.usage"):
            log_ai_call(
                model_id="m",
                prompt_tokens=1,
                completion_tokens=2,
                latency_ms=3.0,
                call_type="sprint",
                user_id="u1",
            )
        record = caplog.records[-1]
        assert record.completion_tokens == 2
        assert record.latency_ms == 3.0
        assert "tokens_in=1" in record.getMessage()


class TestUnavailableProvider:
    @pytest.mark.asyncio
    async def test_every_call_is_unavailable(self) -> None:
        client = GenerationClient(
            UnavailableProvider("No API key was provided"),
            MOCK_MODEL_CONFIG,
            timeout_seconds=1,
        )
        with pytest.raises(ProviderUnavailable, match="No API key was provided"):
            await client.generate("prompt", call_type="sprint")
