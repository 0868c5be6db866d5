"""
Discovery of models installed in a local Ollama instance.

An unreachable, slow, or misbehaving Ollama is reported as
``available=False`` rather than raised.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

import httpx

from casecraft.core.config import get_settings
from casecraft.schemas.models import ModelListResponse, OllamaModelInfo

logger = logging.getLogger(__name__)


def _to_model_info(raw: Dict[str, Any]) -> OllamaModelInfo:
    details = raw.get("details") or {}
    name = str(raw.get("name") or raw.get("model") or "")
    return OllamaModelInfo(
        id=name,
        name=name,
        size=details.get("parameter_size") or "unknown",
        family=details.get("family") or "unknown",
        quantization=details.get("quantization_level") or "",
    )


async def list_ollama_models(client: httpx.AsyncClient | None = None) -> ModelListResponse:
    settings = get_settings()
    base_url = settings.ollama_base_url
    timeout = settings.model_discovery_timeout_seconds
    own_client = client is None
    if client is None:
        client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    try:
        response = await asyncio.wait_for(client.get("/api/tags"), timeout=timeout)
    except (httpx.HTTPError, asyncio.TimeoutError) as exc:
        logger.warning(
            "Ollama model listing failed: %s",
            str(exc) or type(exc).__name__,
            extra={"base_url": base_url},
        )
        return ModelListResponse(
            available=False,
            models=[],
            error=f"Could not connect to Ollama. Make sure it is running on {base_url}",
        )
    finally:
        if own_client:
            await client.aclose()

    if response.is_error:
        logger.warning("Ollama returned HTTP %s for model listing", response.status_code)
        return ModelListResponse(available=False, models=[], error="Ollama returned an error.")

    try:
        data = response.json()
        raw_models: List[Dict[str, Any]] = data.get("models") or []
        models = [_to_model_info(raw) for raw in raw_models]
    except (ValueError, AttributeError) as exc:
        logger.warning("Unexpected Ollama model listing payload: %s", exc)
        return ModelListResponse(
            available=False,
            models=[],
            error="Ollama returned an unexpected response.",
        )

    return ModelListResponse(available=True, models=models)
