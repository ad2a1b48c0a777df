"""Tests for the Ollama completion provider against a fake daemon."""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from letterflow.core.errors import ProviderError
from letterflow.providers.llm.base import LLMProvider
from letterflow.providers.llm.ollama import OllamaProvider, OllamaSettings


class FakeOllama:
    """Records chat requests and replies from a queue of (status, body) pairs."""

    def __init__(self):
        self.requests = []
        self.replies = []

    async def chat(self, request: web.Request) -> web.Response:
        self.requests.append(await request.json())
        status, body = self.replies.pop(0) if self.replies else (200, {"message": {"content": " 2 \n"}})
        if status >= 400:
            return web.Response(status=status, text=body)
        return web.json_response(body)


@pytest.fixture
def daemon() -> FakeOllama:
    return FakeOllama()


@pytest_asyncio.fixture
async def ollama_url(daemon):
    app = web.Application()
    app.router.add_post("/api/chat", daemon.chat)
    server = TestServer(app)
    await server.start_server()
    yield str(server.make_url("/"))
    await server.close()


def make_provider(url: str, **overrides) -> OllamaProvider:
    settings = OllamaSettings(base_url=url, retry_delay_seconds=0.0, **overrides)
    return OllamaProvider(settings=settings)


class TestLLMProvider:
    """Test LLMProvider helpers."""

    def test_build_messages(self):
        """Test building chat messages."""
        assert LLMProvider.build_messages("splendiferous", "Count the e's") == [
            {"role": "system", "content": "Count the e's"},
            {"role": "user", "content": "splendiferous"},
        ]

    def test_build_messages_without_directive(self):
        """No system message is sent without a directive."""
        assert LLMProvider.build_messages("hi") == [{"role": "user", "content": "hi"}]


class TestOllamaProvider:
    """Test OllamaProvider class."""

    def test_defaults(self):
        """Default Ollama settings."""
        settings = OllamaSettings()

        assert settings.model == "granite4:1b"
        assert settings.base_url == "http://localhost:11434"

    @pytest.mark.asyncio
    async def test_complete(self, daemon, ollama_url):
        """A completion is returned from the chat endpoint."""
        provider = make_provider(ollama_url, max_tokens=16)
        try:
            answer = await provider.complete("splendiferous", system_directive="Count the e's")
        finally:
            await provider.shutdown()

        assert answer == "2"
        payload = daemon.requests[0]
        assert payload["model"] == "granite4:1b"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.1, "num_predict": 16}
        assert payload["messages"][0] == {"role": "system", "content": "Count the e's"}

    @pytest.mark.asyncio
    async def test_http_error(self, daemon, ollama_url):
        """An HTTP error status is raised as a provider error."""
        daemon.replies.append((500, "model not loaded"))
        provider = make_provider(ollama_url, max_retries=0)
        try:
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("splendiferous")
        finally:
            await provider.shutdown()

        assert "model not loaded" in str(exc_info.value.cause)

    @pytest.mark.asyncio
    async def test_retries_failed_request(self, daemon, ollama_url):
        """A failed request is retried."""
        daemon.replies.append((503, "busy"))
        provider = make_provider(ollama_url, max_retries=1)
        try:
            answer = await provider.complete("splendiferous")
        finally:
            await provider.shutdown()

        assert answer == "2"
        assert len(daemon.requests) == 2

    @pytest.mark.asyncio
    async def test_malformed_reply(self, daemon, ollama_url):
        """A reply without a message is rejected."""
        daemon.replies.append((200, {"done": True}))
        provider = make_provider(ollama_url, max_retries=0)
        try:
            with pytest.raises(ProviderError):
                await provider.complete("splendiferous")
        finally:
            await provider.shutdown()
