from fastapi import APIRouter

from casecraft.schemas.models import ModelListResponse
from casecraft.services.model_discovery import list_ollama_models


router = APIRouter()


@router.get(
    "/models",
    response_model=ModelListResponse,
    summary="List models available in the local Ollama instance",
)
async def list_models() -> ModelListResponse:
    """Always 200; an unreachable Ollama is reported with ``available: false``."""
    return await list_ollama_models()
