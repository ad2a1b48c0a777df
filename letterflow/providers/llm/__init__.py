"""Text-completion providers."""

from .base import LLMProvider, LLMProviderSettings
from .ollama.provider import OllamaProvider, OllamaSettings

__all__ = ["LLMProvider", "LLMProviderSettings", "OllamaProvider", "OllamaSettings"]
