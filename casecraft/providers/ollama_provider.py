from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

import httpx

from casecraft.core.config import get_settings
from casecraft.providers.base import LLMCompletion, LLMProvider

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0


class OllamaProvider(LLMProvider):
    """
    LLM provider backed by a local Ollama server (POST /api/generate).

    Connection errors and error statuses are retried with exponential
    backoff; the last error is re-raised once attempts run out.
    """

    name = "ollama"

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        self._client = client or httpx.AsyncClient(
            base_url=self._settings.ollama_base_url,
            timeout=httpx.Timeout(float(self._settings.ollama_timeout_seconds), connect=10.0),
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _post_with_retries(self, payload: Dict[str, Any]) -> httpx.Response:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = await self._client.post("/api/generate", json=payload)
                response.raise_for_status()
                return response
            except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                logger.warning(
                    "Ollama request failed (attempt %d/%d): %s",
                    attempt,
                    MAX_ATTEMPTS,
                    exc,
                    extra={"model": payload["model"], "attempt": attempt},
                )
                if attempt == MAX_ATTEMPTS:
                    raise
                await asyncio.sleep(BACKOFF_BASE_SECONDS * 2 ** (attempt - 1))
        raise AssertionError("unreachable")

    async def generate(
        self,
        system_prompt: str,
        prompt: str,
        **kwargs: object,
    ) -> LLMCompletion:
        model = kwargs.get("model")
        model_name = model if isinstance(model, str) and model else self._settings.ollama_model
        payload: Dict[str, Any] = {
            "model": model_name,
            "system": system_prompt,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.3, "top_p": 0.9},
        }
        logger.info("Ollama request: model=%s", model_name)

        response = await self._post_with_retries(payload)
        data: Dict[str, Any] = response.json()
        raw_output = data.get("response")
        tokens_used = int(data.get("prompt_eval_count") or 0) + int(data.get("eval_count") or 0)
        return LLMCompletion(
            content=raw_output if isinstance(raw_output, str) else response.text,
            model=str(data.get("model") or model_name),
            tokens_used=tokens_used,
        )
