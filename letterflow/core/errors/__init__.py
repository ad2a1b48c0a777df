from .errors import (
    BaseError,
    ConfigurationError,
    ErrorContext,
    ExecutionError,
    LoggingHandler,
    ProviderError,
    StateError,
    ValidationError,
)
from .models import (
    ConfigurationErrorContext,
    ErrorContextData,
    ProviderErrorContext,
    StateErrorContext,
    ValidationErrorDetail,
)

__all__ = [
    "BaseError",
    "ConfigurationError",
    "ErrorContext",
    "ExecutionError",
    "LoggingHandler",
    "ProviderError",
    "StateError",
    "ValidationError",
    "ConfigurationErrorContext",
    "ErrorContextData",
    "ProviderErrorContext",
    "StateErrorContext",
    "ValidationErrorDetail",
]
