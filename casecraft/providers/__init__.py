"""
LLM provider abstraction layer.

All LLM-specific logic lives in provider implementations.
Business logic depends only on the LLMProvider interface.
"""

from casecraft.providers.base import LLMCompletion, LLMProvider
from casecraft.providers.factory import get_provider

__all__ = ["LLMCompletion", "LLMProvider", "get_provider"]
