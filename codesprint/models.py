"""Model ID registry — single source of truth for generation model identifiers.

Every generation call resolves its model ID through this module. The rest
of the codebase imports tier names or constants from here — no raw model
ID strings anywhere else.

Three-layer abstraction:
  Layer 1: Callers ask for a capability tier ("fast", "standard", "complex")
  Layer 2: TIER_MAP resolves tier → ModelConfig
  Layer 3: Model ID constants (updated when providers release new versions)

Daily sprints use the "fast" tier (short payload, latency matters). Full
track synthesis uses "standard" (longer, more structured output).
"""

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Layer 3: Model IDs (update when providers release new versions)
# ---------------------------------------------------------------------------

# --- Claude models ---
CLAUDE_HAIKU: str = "claude-haiku-4-5-20251001"
CLAUDE_SONNET: str = "claude-sonnet-4-6"

# --- Gemini models ---
GEMINI_FLASH_LITE: str = "gemini-2.5-flash-lite"
GEMINI_FLASH: str = "gemini-2.5-flash"
GEMINI_PRO: str = "gemini-2.5-pro"


# ---------------------------------------------------------------------------
# ModelConfig: bundles all provider-specific configuration for a tier
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelConfig:
    """Bundles all provider-specific configuration for a model tier.

    Tier 1 leaf — no project imports.
    """

    provider: str          # "gemini", "anthropic" or "mock"
    model_id: str
    thinking_budget: int = 0  # Gemini thinking tokens (0 = off)
    max_output_tokens: int = 2048


# ---------------------------------------------------------------------------
# Layer 2: Capability tier → ModelConfig
# ---------------------------------------------------------------------------
# thinking_budget=0 everywhere: generation is bounded by a hard timeout and
# the payload is plain JSON, so internal reasoning only adds latency.

TIER_MAP: dict[str, ModelConfig] = {
    "fast": ModelConfig(provider="gemini", model_id=GEMINI_FLASH_LITE),
    "standard": ModelConfig(
        provider="gemini", model_id=GEMINI_FLASH, max_output_tokens=8192
    ),
    "complex": ModelConfig(
        provider="gemini", model_id=GEMINI_PRO, max_output_tokens=8192
    ),
}

# Same tiers when AI_BACKEND=anthropic.
ANTHROPIC_TIER_MAP: dict[str, ModelConfig] = {
    "fast": ModelConfig(provider="anthropic", model_id=CLAUDE_HAIKU),
    "standard": ModelConfig(
        provider="anthropic", model_id=CLAUDE_SONNET, max_output_tokens=8192
    ),
    "complex": ModelConfig(
        provider="anthropic", model_id=CLAUDE_SONNET, max_output_tokens=8192
    ),
}

MOCK_MODEL_CONFIG = ModelConfig(provider="mock", model_id="mock-v1")


def resolve_tier(tier: str, backend: str = "gemini") -> ModelConfig:
    """Resolves a capability tier name to its ModelConfig.

    Args:
        tier: Capability tier name ("fast", "standard", "complex").
        backend: Provider backend ("gemini", "anthropic" or "mock").

    Returns:
        The ModelConfig for the given tier.

    Raises:
        KeyError: If the tier name is not found in the tier map.
    """
    if backend == "anthropic":
        return ANTHROPIC_TIER_MAP[tier]
    if backend == "mock":
        if tier not in TIER_MAP:
            raise KeyError(tier)
        return MOCK_MODEL_CONFIG
    return TIER_MAP[tier]
