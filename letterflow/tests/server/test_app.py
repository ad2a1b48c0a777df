"""Tests for the HTTP façade."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from letterflow.agent import AgentOrchestrator
from letterflow.bootstrap import COUNT_ES_TOOL
from letterflow.core.errors import ErrorContext, ProviderError, ProviderErrorContext
from letterflow.providers.mcp.base import MCPConnectionError, MCPTimeoutError, ToolError, ToolErrorKind, ToolSuccess
from letterflow.server.main import create_app


@pytest.fixture
def tool_client() -> Mock:
    tool_client = Mock()
    tool_client.list_tools = AsyncMock(return_value={"countEs": COUNT_ES_TOOL})
    tool_client.call_tool = AsyncMock(return_value=ToolSuccess(content="2"))
    return tool_client


@pytest.fixture
def client(app_settings, tool_client):
    app = create_app(app_settings, orchestrator=AgentOrchestrator(tool_client))
    with TestClient(app) as test_client:
        yield test_client


def provider_error() -> ProviderError:
    return ProviderError(
        "Failed to initialize provider",
        ErrorContext.create(
            flow_name="provider_base",
            error_type="InitializationError",
            error_location="initialize",
            component="tool-client",
            operation="provider_initialization",
        ),
        ProviderErrorContext(provider_name="tool-client", provider_type="mcp_client", operation="initialize", retry_count=0),
    )


class TestCountEndpoints:
    """Test the letter counting endpoints."""

    def test_count_es(self, client):
        """Test counting a word in the path."""
        response = client.get("/countEs/splendiferous")

        assert response.status_code == 200
        assert response.text == "2"
        assert response.headers["content-type"].startswith("text/plain")

    def test_count_es_body(self, client, tool_client):
        """Test counting the raw request body."""
        response = client.post("/countEs", content=b"splendiferous")

        assert response.status_code == 200
        assert response.text == "2"
        assert tool_client.call_tool.await_args.args[0].arguments == {"word": "splendiferous"}

    def test_undecodable_body_is_400(self, client, tool_client):
        """A body that is not valid UTF-8 is rejected before the agent runs."""
        response = client.post("/countEs", content=b"\xff\xfe")

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/plain")
        tool_client.call_tool.assert_not_called()

    def test_validation_error_is_400(self, client, tool_client):
        """A validation error is a 400."""
        tool_client.call_tool.return_value = ToolError(
            error="Invalid arguments for tool 'countEs': word: bad", kind=ToolErrorKind.VALIDATION
        )

        response = client.get("/countEs/x")

        assert response.status_code == 400
        assert "Invalid arguments" in response.text

    def test_execution_error_is_502(self, client, tool_client):
        """An execution error is a 502."""
        tool_client.call_tool.return_value = ToolError(error="Tool execution failed")

        response = client.get("/countEs/x")

        assert response.status_code == 502
        assert response.text == "Tool execution failed"

    def test_timeout_is_504(self, client, tool_client):
        """A tool timeout is a 504."""
        tool_client.call_tool.side_effect = MCPTimeoutError("slow")
        assert client.get("/countEs/x").status_code == 504

    def test_unreachable_is_503(self, client, tool_client):
        """An unreachable tool server is a 503."""
        tool_client.call_tool.side_effect = MCPConnectionError("refused")
        assert client.get("/countEs/x").status_code == 503

    def test_provider_error_is_503(self, client, tool_client):
        """A provider error is a 503."""
        tool_client.list_tools.side_effect = provider_error()
        assert client.get("/countEs/x").status_code == 503

    def test_unavailable_tool_is_503(self, client, tool_client):
        """A tool the server does not advertise is a 503."""
        tool_client.list_tools.return_value = {}

        response = client.get("/countEs/x")

        assert response.status_code == 503
        assert "countEs" in response.text


class TestHealthEndpoints:
    """Test health and readiness endpoints."""

    def test_health(self, client):
        """Test the health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_ready(self, client):
        """Ready when the tool is advertised."""
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    def test_not_ready_when_unreachable(self, client, tool_client):
        """Not ready when the tool server is unreachable."""
        tool_client.list_tools = AsyncMock(side_effect=MCPConnectionError("refused"))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_not_ready_without_tool(self, client, tool_client):
        """Not ready when the tool is missing."""
        tool_client.list_tools.return_value = {}

        response = client.get("/ready")

        assert response.status_code == 503
        assert "countEs" in response.json()["detail"]
