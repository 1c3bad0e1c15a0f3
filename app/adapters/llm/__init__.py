"""LLM adapter layer - isolates the provider wire format from the service."""

from app.adapters.llm.base import AbstractLLMClient, LLMResponse
from app.adapters.llm.factory import create_llm_client
from app.adapters.llm.gemini_client import GeminiClient

__all__ = [
    "AbstractLLMClient",
    "GeminiClient",
    "LLMResponse",
    "create_llm_client",
]
