from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from casecraft.core.config import get_settings
from casecraft.providers.base import LLMCompletion, LLMProvider
from casecraft.utils.token_allocation import calculate_dynamic_max_tokens


logger = logging.getLogger(__name__)

# Placeholder shipped in example env files; treated as "not configured".
_PLACEHOLDER_API_KEY = "your-openai-api-key-here"


class OpenAIProvider(LLMProvider):
    """
    LLM provider that calls the OpenAI Chat Completions API.

    Requests a JSON object response. max_tokens is sized from the prompt,
    the requested number of test cases, and the model context window.
    """

    name = "openai"

    def __init__(self, client: Optional[AsyncOpenAI] = None) -> None:
        self._settings = get_settings()
        if client is not None:
            self._client = client
        else:
            api_key = self._settings.openai_api_key
            if not api_key or api_key == _PLACEHOLDER_API_KEY:
                raise ValueError(
                    "OpenAI API key is required when using OpenAI provider. "
                    "Set CASECRAFT_OPENAI_API_KEY (or OPENAI_API_KEY) in environment or .env."
                )
            self._client = AsyncOpenAI(
                api_key=api_key,
                timeout=float(self._settings.openai_timeout_seconds),
            )

    async def close(self) -> None:
        await self._client.close()

    async def generate(
        self,
        system_prompt: str,
        prompt: str,
        **kwargs: object,
    ) -> LLMCompletion:
        model = kwargs.get("model")
        model_name = model if isinstance(model, str) and model else self._settings.openai_model
        count = kwargs.get("count") if isinstance(kwargs.get("count"), int) else None
        max_tokens = calculate_dynamic_max_tokens(
            prompt=system_prompt + "\n" + prompt,
            count=count,
            model_name=model_name,
        )

        logger.info(
            "OpenAI request: model=%s max_tokens=%s",
            model_name,
            max_tokens,
        )

        response = await self._client.chat.completions.create(
            model=model_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )

        # OpenAI may echo a normalized model name.
        response_model = getattr(response, "model", None) or model_name
        usage = getattr(response, "usage", None)
        tokens_used = getattr(usage, "total_tokens", 0) or 0
        logger.info(
            "OpenAI response: model_used=%s tokens=%s",
            response_model,
            tokens_used,
        )

        content = response.choices[0].message.content
        return LLMCompletion(
            content=content or "",
            model=response_model,
            tokens_used=tokens_used,
        )
