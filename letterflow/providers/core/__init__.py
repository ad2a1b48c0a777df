from .base import Provider, ProviderSettings, RetryConfig
from .provider_base import ProviderBase

__all__ = ["Provider", "ProviderBase", "ProviderSettings", "RetryConfig"]
