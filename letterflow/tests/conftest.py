"""Shared fixtures: settings and a real tool server on a local port."""

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer

from letterflow.bootstrap import build_tool_server
from letterflow.config.settings import AppSettings
from letterflow.providers.mcp.server.provider import MCPServerProvider


@pytest.fixture
def app_settings() -> AppSettings:
    """Settings isolated from the environment and any .env file."""
    return AppSettings(_env_file=None)


@pytest.fixture
def tool_server_provider(app_settings: AppSettings) -> MCPServerProvider:
    return build_tool_server(app_settings)


@pytest_asyncio.fixture
async def tool_server(tool_server_provider: MCPServerProvider):
    """The tool server's aiohttp application served by a TestServer."""
    server = TestServer(tool_server_provider.build_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def mcp_url(tool_server: TestServer) -> str:
    return str(tool_server.make_url("/mcp"))
