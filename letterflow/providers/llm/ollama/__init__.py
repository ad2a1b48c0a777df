from .provider import OllamaProvider, OllamaSettings

__all__ = ["OllamaProvider", "OllamaSettings"]
