"""Tests for codesprint.ai.providers.mock — MockProvider contract verification."""

import json

import pytest

from codesprint.ai.providers.base import AIProvider, UsageInfo
from codesprint.ai.providers.mock import (
    DEMO_SPRINT_RESPONSE,
    DEMO_TRACK_RESPONSE,
    MockProvider,
)
from codesprint.content.normalizer import normalize_sprint, normalize_track
from codesprint.errors import ProviderTimeout, ProviderUnavailable
from codesprint.models import MOCK_MODEL_CONFIG

_SYSTEM = "You are a test."
_MESSAGES: list[dict[str, str]] = [{"role": "user", "content": "Hello"}]


async def _call(provider: MockProvider) -> tuple[str, UsageInfo]:
    return await provider.complete(
        system_prompt=_SYSTEM, messages=_MESSAGES, model_config=MOCK_MODEL_CONFIG
    )


class TestDefaults:
    def test_isinstance(self) -> None:
        assert isinstance(MockProvider(), AIProvider)

    @pytest.mark.asyncio
    async def test_default_response_is_demo_sprint(self) -> None:
        text, usage = await _call(MockProvider())
        assert text == DEMO_SPRINT_RESPONSE
        assert usage == UsageInfo(prompt_tokens=10, completion_tokens=5)

    def test_demo_payloads_normalize(self) -> None:
        assert len(normalize_sprint(DEMO_SPRINT_RESPONSE)) == len(json.loads(DEMO_SPRINT_RESPONSE))
        assert normalize_track(DEMO_TRACK_RESPONSE).title == "Python Foundations"


class TestSequencing:
    @pytest.mark.asyncio
    async def test_responses_in_order_then_last_repeats(self) -> None:
        provider = MockProvider(responses=["a", "b"])
        texts = [(await _call(provider))[0] for _ in range(4)]
        assert texts == ["a", "b", "b", "b"]

    @pytest.mark.asyncio
    async def test_calls_recorded(self) -> None:
        provider = MockProvider()
        await _call(provider)
        assert len(provider.calls) == 1
        assert provider.calls[0]["system_prompt"] == _SYSTEM
        assert provider.calls[0]["messages"] == _MESSAGES
        assert provider.calls[0]["model_config"] is MOCK_MODEL_CONFIG


class TestErrors:
    @pytest.mark.asyncio
    async def test_error_always_raised(self) -> None:
        provider = MockProvider(error=ProviderUnavailable("down"))
        for _ in range(2):
            with pytest.raises(ProviderUnavailable):
                await _call(provider)
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_per_call_errors(self) -> None:
        provider = MockProvider(responses=["ok"], errors=[ProviderTimeout("slow"), None])
        with pytest.raises(ProviderTimeout):
            await _call(provider)
        text, _ = await _call(provider)
        assert text == "ok"
