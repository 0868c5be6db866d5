import asyncio
import json

import httpx
import pytest

from casecraft.core.config import get_settings
from casecraft.providers import get_provider
from casecraft.providers import ollama_provider
from casecraft.providers.factory import resolve_provider_name
from casecraft.providers.ollama_provider import OllamaProvider
from casecraft.providers.openai_provider import OpenAIProvider
from casecraft.utils.token_allocation import (
    MAX_OUTPUT_TOKENS,
    context_window_for,
    output_budget,
)


def _ollama(handler) -> OllamaProvider:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="http://ollama.test",
    )
    return OllamaProvider(client=client)


async def _generate(provider, **kwargs):
    try:
        return await provider.generate("system text", "user prompt", **kwargs)
    finally:
        await provider.close()


def test_ollama_sends_system_prompt_and_counts_tokens():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "model": "llama3.2:3b",
                "response": '{"testCases": []}',
                "prompt_eval_count": 120,
                "eval_count": 80,
            },
        )

    completion = asyncio.run(_generate(_ollama(handler)))

    assert seen["system"] == "system text"
    assert seen["prompt"] == "user prompt"
    assert seen["format"] == "json"
    assert seen["stream"] is False
    assert seen["model"] == get_settings().ollama_model
    assert completion.content == '{"testCases": []}'
    assert completion.tokens_used == 200


def test_ollama_uses_requested_model():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"response": "{}"})

    completion = asyncio.run(_generate(_ollama(handler), model="mistral:latest"))

    assert seen["model"] == "mistral:latest"
    assert completion.model == "mistral:latest"
    assert completion.tokens_used == 0


def test_ollama_retries_then_succeeds(monkeypatch):
    monkeypatch.setattr(ollama_provider, "BACKOFF_BASE_SECONDS", 0)
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        if attempts["n"] < 3:
            return httpx.Response(503, text="loading model")
        return httpx.Response(200, json={"response": "{}"})

    completion = asyncio.run(_generate(_ollama(handler)))

    assert attempts["n"] == 3
    assert completion.content == "{}"


def test_ollama_gives_up_after_max_attempts(monkeypatch):
    monkeypatch.setattr(ollama_provider, "BACKOFF_BASE_SECONDS", 0)
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(httpx.ConnectError):
        asyncio.run(_generate(_ollama(handler)))
    assert attempts["n"] == ollama_provider.MAX_ATTEMPTS


def test_resolve_provider_name():
    assert resolve_provider_name("OLLAMA") == "ollama"
    assert resolve_provider_name(None) == get_settings().default_llm_provider
    with pytest.raises(ValueError):
        resolve_provider_name("gemini")


def test_get_provider_builds_ollama():
    provider = get_provider("ollama")
    try:
        assert isinstance(provider, OllamaProvider)
        assert provider.name == "ollama"
    finally:
        asyncio.run(provider.close())


@pytest.mark.parametrize("api_key", [None, "", "your-openai-api-key-here"])
def test_openai_requires_real_api_key(monkeypatch, api_key):
    monkeypatch.setattr(get_settings(), "openai_api_key", api_key)

    with pytest.raises(ValueError, match="API key"):
        OpenAIProvider()


def test_output_budget_scales_with_count():
    assert output_budget(None) == 10 * 450 + 500
    assert output_budget(2) == 2 * 450 + 500
    assert output_budget(100) == MAX_OUTPUT_TOKENS


def test_context_window_lookup():
    assert context_window_for("gpt-4o-mini") == 128_000
    assert context_window_for("gpt-4") == 8_192
    assert context_window_for("gpt-4.1-mini") == 1_000_000
    assert context_window_for("some-local-model") == 128_000
