from typing import List, Optional

from casecraft.schemas.testcase import CamelModel


class OllamaModelInfo(CamelModel):
    id: str
    name: str
    size: str = "unknown"
    family: str = "unknown"
    quantization: str = ""


class ModelListResponse(CamelModel):
    """Local models reported by Ollama. ``available`` is False when it cannot be reached."""

    available: bool
    models: List[OllamaModelInfo]
    error: Optional[str] = None
