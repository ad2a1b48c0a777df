"""LLM provider base class.

The completion collaborator used by the agent when a tool result is
reworded into the final answer. The inference engine itself is external.
"""

import logging
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import Field

from letterflow.providers.core.base import Provider, ProviderSettings

logger = logging.getLogger(__name__)


class LLMProviderSettings(ProviderSettings):
    """Settings for LLM providers."""

    model: str = Field(..., min_length=1, description="Model name known to the backend")
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for generation (0.0 = deterministic, 2.0 = very random)",
    )
    max_tokens: Optional[int] = Field(
        default=None, gt=0, description="Maximum tokens to generate (None = no limit)"
    )


SettingsT = TypeVar("SettingsT", bound=LLMProviderSettings)


class LLMProvider(Provider[SettingsT], Generic[SettingsT]):
    """Base class for text-completion backends."""

    async def complete(self, prompt: str, system_directive: Optional[str] = None) -> str:
        """Generate a completion for ``prompt``.

        Args:
            prompt: User turn text
            system_directive: Optional system turn preceding the prompt

        Returns:
            The generated text
        """
        raise NotImplementedError("Subclasses must implement complete().")

    @staticmethod
    def build_messages(prompt: str, system_directive: Optional[str] = None) -> List[Dict[str, str]]:
        """Chat-style message list for backends that take one."""
        messages: List[Dict[str, str]] = []
        if system_directive:
            messages.append({"role": "system", "content": system_directive})
        messages.append({"role": "user", "content": prompt})
        return messages
