"""Usage logging for generation calls.

``GenerationClient`` calls ``log_ai_call`` once per successful provider
call. The human-readable message is for tailing logs; the same values go
into ``extra`` so a JSON formatter can ship them for token and latency
dashboards. Timeouts and provider errors are logged by the caller, not here.

Logger name: ``codesprint.ai.usage``

Tier 2 service: imports only stdlib.
"""

import logging

logger = logging.getLogger("codesprint.ai.usage")


def log_ai_call(
    *,
    model_id: str,
    prompt_tokens: int,
    completion_tokens: int,
    latency_ms: float,
    call_type: str,
    user_id: str,
) -> None:
    """Emits a structured INFO log for a completed generation call.

    Args:
        model_id: The model identifier used for this call.
        prompt_tokens: Number of input tokens consumed.
        completion_tokens: Number of output tokens generated.
        latency_ms: Wall-clock duration of the call in milliseconds.
        call_type: What was generated ("sprint" or "track").
        user_id: The user the content is for ("-" for admin synthesis).
    """
    logger.info(
        "AI call: %s %s tokens_in=%d tokens_out=%d latency=%.0fms user=%s",
        call_type,
        model_id,
        prompt_tokens,
        completion_tokens,
        latency_ms,
        user_id,
        extra={
            "model_id": model_id,
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "latency_ms": latency_ms,
            "call_type": call_type,
            "user_id": user_id,
        },
    )
