"""
Completion budget for OpenAI generation requests.

The budget grows with the number of requested test cases and is clipped
so that prompt plus completion stay inside a fraction of the model's
context window.
"""
from __future__ import annotations

import logging
from typing import Optional

import tiktoken

logger = logging.getLogger(__name__)

TOKENS_PER_TEST_CASE: int = 450

# Used when the request leaves the count to the model (the prompt asks for 5-10).
DEFAULT_TEST_CASE_COUNT: int = 10

# JSON envelope around the testCases array.
RESPONSE_OVERHEAD_TOKENS: int = 500

MAX_OUTPUT_TOKENS: int = 16_384

RESERVED_TOKENS: int = 1000

MAX_CONTEXT_FRACTION: float = 0.70

DEFAULT_CONTEXT_WINDOW: int = 128_000

# Checked in order; more specific prefixes first.
CONTEXT_WINDOWS: tuple[tuple[str, int], ...] = (
    ("gpt-4.1", 1_000_000),
    ("gpt-4o", 128_000),
    ("gpt-4-turbo", 128_000),
    ("gpt-4", 8_192),
    ("gpt-3.5-turbo", 16_385),
)


def context_window_for(model_name: str) -> int:
    name = model_name.lower()
    for prefix, size in CONTEXT_WINDOWS:
        if name.startswith(prefix):
            return size
    return DEFAULT_CONTEXT_WINDOW


def count_tokens(text: str, model_name: str) -> int:
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except KeyError:
        encoding = tiktoken.get_encoding("cl100k_base")
    return len(encoding.encode(text))


def output_budget(count: Optional[int]) -> int:
    """Tokens needed for ``count`` test cases, capped at MAX_OUTPUT_TOKENS."""
    cases = count if count and count > 0 else DEFAULT_TEST_CASE_COUNT
    return min(cases * TOKENS_PER_TEST_CASE + RESPONSE_OVERHEAD_TOKENS, MAX_OUTPUT_TOKENS)


def calculate_dynamic_max_tokens(
    prompt: str,
    count: Optional[int] = None,
    model_name: str = "gpt-4o",
    context_window: Optional[int] = None,
) -> int:
    """
    max_tokens for a completion of ``prompt``.

    The smaller of the per-case output budget and whatever is left of
    MAX_CONTEXT_FRACTION of the context window after the prompt and
    RESERVED_TOKENS. Never negative.
    """
    prompt_tokens = count_tokens(prompt, model_name)
    window = context_window if context_window is not None else context_window_for(model_name)
    headroom = max(0, int(window * MAX_CONTEXT_FRACTION) - prompt_tokens - RESERVED_TOKENS)
    max_tokens = min(headroom, output_budget(count))

    logger.debug(
        "max_tokens=%s for %s (prompt_tokens=%s, window=%s)",
        max_tokens,
        model_name,
        prompt_tokens,
        window,
        extra={"prompt_tokens": prompt_tokens, "max_tokens": max_tokens, "count": count},
    )
    return max_tokens
