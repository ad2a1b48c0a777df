"""Base error classes with structured error context.

This module provides the foundation for the error handling system:
structured error types, their context, and a logging handler used at the
boundaries that contain faults instead of propagating them.
"""

import logging
import traceback
from datetime import datetime
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .models import (
    ConfigurationErrorContext,
    ErrorContextData,
    ProviderErrorContext,
    StateErrorContext,
    ValidationErrorDetail,
)

logger = logging.getLogger(__name__)


class ErrorContext:
    """Structured context information for errors."""

    def __init__(self, context_data: ErrorContextData):
        self._data = context_data

    @classmethod
    def create(
        cls, flow_name: str, error_type: str, error_location: str, component: str, operation: str
    ) -> "ErrorContext":
        """Create a new error context with required data.

        Args:
            flow_name: Name of the flow or route
            error_type: Type of error
            error_location: Location in code
            component: Component raising error
            operation: Operation being performed

        Returns:
            New ErrorContext instance
        """
        context_data = ErrorContextData(
            flow_name=flow_name,
            error_type=error_type,
            error_location=error_location,
            component=component,
            operation=operation,
        )
        return cls(context_data)

    @property
    def data(self) -> ErrorContextData:
        """Get the context data."""
        return self._data

    @property
    def timestamp(self) -> datetime:
        """Get the context creation timestamp."""
        return self._data.timestamp

    def __str__(self) -> str:
        return f"ErrorContext({self._data.model_dump()})"


class BaseError(Exception):
    """Base class for all framework errors with structured context.

    This class provides:
    1. Structured error information with context
    2. Clean serialization for logging and reporting
    3. Cause tracking for nested errors
    """

    def __init__(self, message: str, context: ErrorContext, cause: Optional[Exception] = None):
        self.message = message
        self.context = context
        self.cause = cause
        self.timestamp = datetime.now()
        self.traceback = self._capture_traceback()
        super().__init__(message)

    def _capture_traceback(self) -> str:
        """Capture the traceback of the cause, if any."""
        if self.cause is not None and self.cause.__traceback__ is not None:
            return "".join(
                traceback.format_exception(type(self.cause), self.cause, self.cause.__traceback__)
            )
        return ""

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary.

        Returns:
            Dictionary representation of error
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context.data.model_dump(),
            "cause": str(self.cause) if self.cause else None,
            "traceback": self.traceback,
        }

    def __str__(self) -> str:
        cause_str = f" (caused by: {self.cause})" if self.cause else ""
        return f"{self.__class__.__name__}: {self.message}{cause_str}"


class ValidationError(BaseError):
    """Error raised when input fails validation."""

    def __init__(
        self,
        message: str,
        validation_errors: List[ValidationErrorDetail],
        context: ErrorContext,
        cause: Optional[Exception] = None,
    ):
        self.validation_errors = validation_errors
        super().__init__(message, context, cause)

    @classmethod
    def from_pydantic(
        cls, error: PydanticValidationError, context: ErrorContext, message: str = "Validation failed"
    ) -> "ValidationError":
        """Build a validation error from a pydantic ValidationError."""
        details = [
            ValidationErrorDetail(
                location=".".join(str(part) for part in item["loc"]) or "<root>",
                message=item["msg"],
                error_type=item["type"],
            )
            for item in error.errors()
        ]
        return cls(message, details, context, cause=error)

    def describe(self) -> str:
        """Human readable list of the violated constraints."""
        return "; ".join(f"{e.location}: {e.message}" for e in self.validation_errors)

    def __str__(self) -> str:
        base_str = super().__str__()
        if self.validation_errors:
            errors_str = "; ".join(f"{e.location}: {e.message}" for e in self.validation_errors[:3])
            if len(self.validation_errors) > 3:
                errors_str += f" (and {len(self.validation_errors) - 3} more)"
            return f"{base_str} - {errors_str}"
        return base_str


class ExecutionError(BaseError):
    """Error raised when executing a capability fails unexpectedly."""


class StateError(BaseError):
    """Error raised when a state machine is driven through an illegal transition."""

    def __init__(
        self,
        message: str,
        context: ErrorContext,
        state_context: StateErrorContext,
        cause: Optional[Exception] = None,
    ):
        self.state_context = state_context
        super().__init__(message, context, cause)


class ConfigurationError(BaseError):
    """Error raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        context: ErrorContext,
        config_context: ConfigurationErrorContext,
        cause: Optional[Exception] = None,
    ):
        self.config_context = config_context
        super().__init__(message, context, cause)


class ProviderError(BaseError):
    """Error raised when provider operations fail."""

    def __init__(
        self,
        message: str,
        context: ErrorContext,
        provider_context: ProviderErrorContext,
        cause: Optional[Exception] = None,
    ):
        self.provider_context = provider_context
        super().__init__(message, context, cause)


class LoggingHandler:
    """Error handler that logs errors with configurable verbosity.

    Used where an error is contained rather than raised, so the full
    detail still ends up in the server-side log.
    """

    def __init__(
        self,
        level: int = logging.ERROR,
        include_context: bool = True,
        include_traceback: bool = True,
        logger_name: Optional[str] = None,
    ):
        self.level = level
        self.include_context = include_context
        self.include_traceback = include_traceback
        self.logger = logging.getLogger(logger_name or __name__)

    def __call__(self, error: BaseError) -> None:
        message = f"{type(error).__name__}: {error.message}"

        if self.include_context and error.context:
            message += f"\nContext: {error.context.data.model_dump()}"

        if self.include_traceback and error.traceback:
            message += f"\nCaused by: {error.traceback}"

        self.logger.log(self.level, message)
