from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class LLMCompletion:
    """Raw model output plus the model that produced it and its token usage."""

    content: str
    model: str
    tokens_used: int = 0


class LLMProvider(ABC):
    """
    Interface for LLM providers used to generate test cases.

    Implementations (OpenAI, Ollama) are responsible for
    HTTP calls, retries, and returning raw model output.
    """

    name: str = ""

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        prompt: str,
        **kwargs: object,
    ) -> LLMCompletion:
        """
        Send the prompts to the LLM and return the raw response.

        Callers are responsible for parsing and validating the output
        (a JSON object with a testCases array). Optional kwargs (e.g. model,
        count) may be used by providers for model selection or token
        allocation.
        """
        ...

    async def close(self) -> None:
        """Release network resources held by the provider."""
