"""Strict Pydantic models carried by framework errors."""

from datetime import datetime

from pydantic import Field

from letterflow.core.models import StrictBaseModel


class ErrorContextData(StrictBaseModel):
    """Where and during what an error happened.

    All fields except the timestamp are required.
    """

    flow_name: str = Field(..., description="Name of the flow or route where error occurred")
    error_type: str = Field(..., description="Type of error")
    error_location: str = Field(..., description="Location in code where error occurred")
    timestamp: datetime = Field(default_factory=datetime.now, description="When error occurred")
    component: str = Field(..., description="Component that raised the error")
    operation: str = Field(..., description="Operation being performed")


class ValidationErrorDetail(StrictBaseModel):
    """A single violated constraint."""

    location: str = Field(..., description="Field or location of validation error")
    message: str = Field(..., description="Validation error message")
    error_type: str = Field(..., description="Type of validation error")


class ProviderErrorContext(StrictBaseModel):
    """Provider error context."""

    provider_name: str = Field(..., description="Name of the provider")
    provider_type: str = Field(..., description="Type of provider")
    operation: str = Field(..., description="Operation that failed")
    retry_count: int = Field(..., description="Number of retries attempted")


class StateErrorContext(StrictBaseModel):
    """State machine error context."""

    state_name: str = Field(..., description="Name of the state machine")
    state_type: str = Field(..., description="Type of state")
    transition_from: str = Field(..., description="Previous state")
    transition_to: str = Field(..., description="Target state")


class ConfigurationErrorContext(StrictBaseModel):
    """Configuration error context."""

    config_key: str = Field(..., description="Configuration key that failed")
    config_section: str = Field(..., description="Configuration section")
    expected_type: str = Field(..., description="Expected type of configuration")
    actual_value: str = Field(..., description="Actual value provided")
