"""Provider base implementation with configuration and lifecycle management.

Providers own an external resource (a transport connection, an HTTP
listener, an LLM endpoint). They are created unconnected, initialized once
on demand and shut down explicitly.
"""

import asyncio
import logging
from typing import Any, Callable, ClassVar, Optional, Type, TypeVar

from pydantic import Field

from letterflow.core.errors import ErrorContext, ProviderError, ProviderErrorContext
from letterflow.core.models import StrictBaseModel

from .provider_base import ProviderBase

logger = logging.getLogger(__name__)


class ProviderSettings(StrictBaseModel):
    """Base settings for providers.

    Contains only the fields that apply to every provider type.
    """

    timeout: float = Field(default=30.0, gt=0, description="Operation timeout in seconds")
    max_retries: int = Field(default=0, ge=0, description="Maximum number of retry attempts on failure")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Delay between retry attempts in seconds")
    verbose: bool = Field(default=False, description="Enable verbose logging for debugging")


T = TypeVar('T', bound=ProviderSettings)


class RetryConfig(StrictBaseModel):
    """Retry configuration model for provider operations."""

    max_retries: int = Field(description="Maximum number of retry attempts")
    retry_delay_seconds: float = Field(description="Delay between retry attempts in seconds")
    timeout_seconds: Optional[float] = Field(default=None, description="Timeout for individual operations in seconds")

    @classmethod
    def from_settings_and_params(
        cls,
        settings: ProviderSettings,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None
    ) -> 'RetryConfig':
        """Create retry config from settings and optional parameter overrides."""
        return cls(
            max_retries=retries if retries is not None else settings.max_retries,
            retry_delay_seconds=retry_delay if retry_delay is not None else settings.retry_delay_seconds,
            timeout_seconds=timeout if timeout is not None else settings.timeout
        )


class Provider(ProviderBase[T]):
    """Base class for all providers with lifecycle management.

    Subclasses set ``settings_class`` and implement ``_initialize`` and,
    where they hold resources, ``_shutdown``.
    """

    settings_class: ClassVar[Type[ProviderSettings]] = ProviderSettings

    def __init__(
        self,
        name: str,
        provider_type: str,
        settings: Optional[Any] = None,
        **kwargs: Any
    ):
        if settings is None:
            settings = self.settings_class()

        super().__init__(name=name, provider_type=provider_type, settings=settings, **kwargs)
        self._initialized = False
        self._setup_lock = asyncio.Lock()
        logger.debug(f"Created provider: {name} ({self.provider_type}) with settings: {self.settings}")

    @property
    def initialized(self) -> bool:
        """Check if provider is initialized."""
        return self._initialized

    async def initialize(self) -> None:
        """Initialize the provider.

        Safe to call repeatedly and concurrently; the underlying
        ``_initialize`` runs at most once until the next shutdown.

        Raises:
            ProviderError: If initialization fails
        """
        if self._initialized:
            return

        async with self._setup_lock:
            # Double-checked locking pattern
            if self._initialized:
                return  # type: ignore[unreachable]

            try:
                await self._initialize()
                self._initialized = True
                logger.info(f"Provider '{self.name}' initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize provider '{self.name}': {str(e)}")
                raise ProviderError(
                    message=f"Failed to initialize provider: {str(e)}",
                    context=ErrorContext.create(
                        flow_name="provider_base",
                        error_type="InitializationError",
                        error_location="initialize",
                        component=self.name,
                        operation="provider_initialization"
                    ),
                    provider_context=ProviderErrorContext(
                        provider_name=self.name,
                        provider_type=self.provider_type,
                        operation="initialize",
                        retry_count=0
                    ),
                    cause=e
                ) from e

    async def shutdown(self) -> None:
        """Close provider resources.

        Only attempts shutdown if previously initialized. Errors are logged
        and not re-raised so shutdown sequences always complete.
        """
        if not self._initialized:
            return

        try:
            await self._shutdown()
            logger.info(f"Provider '{self.name}' shut down successfully")
        except Exception as e:
            logger.error(f"Error shutting down provider '{self.name}': {str(e)}")
        finally:
            self._initialized = False

    async def _initialize(self) -> None:
        """Concrete initialization logic implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement _initialize().")

    async def _shutdown(self) -> None:
        """Concrete shutdown logic implemented by subclasses.

        Default implementation does nothing.
        """
        pass

    async def execute_with_retry(
        self,
        operation: Callable[..., Any],
        *args: Any,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        **kwargs: Any
    ) -> Any:
        """Execute an operation with retry and timeout handling.

        Timeouts are never retried.

        Raises:
            ProviderError: If operation fails after retries or times out
        """
        retry_config = RetryConfig.from_settings_and_params(
            settings=self.settings,
            retries=retries,
            retry_delay=retry_delay,
            timeout=timeout
        )

        if not self._initialized:
            await self.initialize()

        attempt = 0
        last_error: Optional[Exception] = None

        while attempt <= retry_config.max_retries:
            try:
                if retry_config.timeout_seconds:
                    return await asyncio.wait_for(
                        operation(*args, **kwargs),
                        timeout=retry_config.timeout_seconds
                    )
                return await operation(*args, **kwargs)

            except asyncio.TimeoutError as e:
                logger.warning(f"Provider {self.name} operation timed out after {retry_config.timeout_seconds}s")
                last_error = e
                attempt += 1
                break

            except Exception as e:
                attempt += 1
                last_error = e

                if attempt <= retry_config.max_retries:
                    logger.warning(
                        f"Provider {self.name} operation failed (attempt {attempt}/{retry_config.max_retries}): {str(e)}"
                    )
                    await asyncio.sleep(retry_config.retry_delay_seconds)

        error_msg = f"Provider operation failed after {attempt} attempt(s)"
        logger.error(f"{error_msg}: {str(last_error)}")

        raise ProviderError(
            message=error_msg,
            context=ErrorContext.create(
                flow_name="provider_operation",
                error_type="ProviderError",
                error_location=f"{self.__class__.__name__}.execute_with_retry",
                component=self.name,
                operation="execute_with_retry"
            ),
            provider_context=ProviderErrorContext(
                provider_name=self.name,
                provider_type=self.provider_type,
                operation="execute_with_retry",
                retry_count=attempt
            ),
            cause=last_error
        )
