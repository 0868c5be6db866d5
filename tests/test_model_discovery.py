import asyncio
import logging

import httpx

from casecraft.core.config import get_settings
from casecraft.services.model_discovery import list_ollama_models

TAGS_PAYLOAD = {
    "models": [
        {
            "name": "llama3.2:3b",
            "model": "llama3.2:3b",
            "details": {
                "family": "llama",
                "parameter_size": "3.2B",
                "quantization_level": "Q4_K_M",
            },
        },
        {"name": "mistral:latest", "details": {}},
    ]
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="http://ollama.test",
    )


async def _list(handler):
    async with _client(handler) as client:
        return await list_ollama_models(client=client)


def test_lists_installed_models():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json=TAGS_PAYLOAD)

    result = asyncio.run(_list(handler))

    assert result.available is True
    assert result.error is None
    assert [m.id for m in result.models] == ["llama3.2:3b", "mistral:latest"]
    first, second = result.models
    assert (first.size, first.family, first.quantization) == ("3.2B", "llama", "Q4_K_M")
    assert (second.size, second.family, second.quantization) == ("unknown", "unknown", "")


def test_unreachable_ollama_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = asyncio.run(_list(handler))

    assert result.available is False
    assert result.models == []
    assert get_settings().ollama_base_url in result.error


def test_slow_ollama_counts_as_unavailable(monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger="casecraft.services.model_discovery")
    monkeypatch.setattr(get_settings(), "model_discovery_timeout_seconds", 0.05)

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json=TAGS_PAYLOAD)

    result = asyncio.run(_list(handler))

    assert result.available is False
    assert result.error.startswith("Could not connect to Ollama")
    assert "Ollama model listing failed: TimeoutError" in caplog.text


def test_error_status_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    result = asyncio.run(_list(handler))

    assert result.available is False
    assert result.error == "Ollama returned an error."


def test_unexpected_payload_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>not json</html>")

    result = asyncio.run(_list(handler))

    assert result.available is False
    assert result.error == "Ollama returned an unexpected response."
