"""Ollama chat provider.

Talks to a running Ollama daemon over its HTTP API. Requests are
non-streaming; failed requests are retried per the provider settings.
"""

import logging
from typing import Any, Dict, Optional

import aiohttp
from pydantic import Field

from letterflow.core.errors import ErrorContext, ProviderError, ProviderErrorContext
from letterflow.providers.llm.base import LLMProvider, LLMProviderSettings

logger = logging.getLogger(__name__)


class OllamaSettings(LLMProviderSettings):
    """Settings for the Ollama provider."""

    base_url: str = Field(default="http://localhost:11434", description="Ollama daemon URL")
    model: str = Field(default="granite4:1b", min_length=1, description="Ollama model tag")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="Sampling temperature")
    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")
    max_retries: int = Field(default=1, ge=0, description="Retries for failed requests")


class OllamaProvider(LLMProvider[OllamaSettings]):
    """Completion provider backed by Ollama's ``/api/chat`` endpoint."""

    settings_class = OllamaSettings

    def __init__(
        self,
        name: str = "ollama",
        provider_type: str = "llm",
        settings: Optional[OllamaSettings] = None,
    ):
        super().__init__(name=name, provider_type=provider_type, settings=settings)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize(self) -> None:
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.settings.timeout)
        )

    async def _shutdown(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    def _build_payload(self, prompt: str, system_directive: Optional[str]) -> Dict[str, Any]:
        options: Dict[str, Any] = {"temperature": self.settings.temperature}
        if self.settings.max_tokens is not None:
            options["num_predict"] = self.settings.max_tokens
        return {
            "model": self.settings.model,
            "messages": self.build_messages(prompt, system_directive),
            "stream": False,
            "options": options,
        }

    async def _chat(self, payload: Dict[str, Any]) -> str:
        if self._session is None:
            raise RuntimeError("Session not initialized. Call initialize() first.")

        url = f"{self.settings.base_url.rstrip('/')}/api/chat"
        async with self._session.post(url, json=payload) as response:
            if response.status >= 400:
                raise ProviderError(
                    message=f"Ollama returned HTTP {response.status}: {await response.text()}",
                    context=ErrorContext.create(
                        flow_name="llm_provider",
                        error_type="HTTPError",
                        error_location=f"{self.__class__.__name__}._chat",
                        component=self.name,
                        operation="chat",
                    ),
                    provider_context=ProviderErrorContext(
                        provider_name=self.name,
                        provider_type=self.provider_type,
                        operation="chat",
                        retry_count=0,
                    ),
                )
            data = await response.json(content_type=None)

        try:
            return data["message"]["content"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Unexpected Ollama response: {data!r}") from e

    async def complete(self, prompt: str, system_directive: Optional[str] = None) -> str:
        """Generate a completion with the configured model."""
        payload = self._build_payload(prompt, system_directive)
        logger.debug(f"Ollama request to model '{self.settings.model}'")
        content = await self.execute_with_retry(self._chat, payload)
        return str(content).strip()
