"""MCP Client Provider implementation."""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from pydantic import Field

from letterflow.core.errors import ProviderError
from letterflow.providers.core.base import Provider, ProviderSettings
from letterflow.providers.mcp.transport import create_transport

from ..base import (
    MCPClient,
    MCPConnection,
    MCPConnectionError,
    MCPError,
    MCPTimeoutError,
    MCPTransport,
    ToolCallOutcome,
    ToolCallRequest,
    ToolDescriptor,
)

logger = logging.getLogger(__name__)


class MCPClientSettings(ProviderSettings):
    """Settings for MCP client provider."""

    server_url: str = Field(
        default="http://localhost:8080/mcp",
        description="MCP endpoint URL; the streamable transport appends '/ws'",
    )
    transport: MCPTransport = Field(
        default=MCPTransport.STREAMABLE, description="MCP transport type: STREAMABLE or HTTP"
    )
    client_name: str = Field(default="count_es", description="Name announced in the handshake")

    # Health check
    auto_health_check: bool = Field(default=False, description="Ping the server periodically")
    health_check_interval: float = Field(default=300.0, gt=0, description="Seconds between pings")

    auth_token: Optional[str] = Field(None, description="Bearer token sent with every request")
    headers: Dict[str, str] = Field(default_factory=dict, description="Additional headers")


class MCPClientProvider(Provider[MCPClientSettings]):
    """Provider that acts as MCP client to a tool server.

    The connection is opened on first use. Tool calls are never retried:
    a transport failure reaches the caller, and the next call reconnects.
    Reconnecting swaps in a fresh client; the previous one is closed once
    the calls still running on it have finished.
    """

    settings_class = MCPClientSettings

    def __init__(
        self,
        name: str = "mcp-client",
        provider_type: str = "mcp_client",
        settings: Optional[MCPClientSettings] = None,
    ):
        super().__init__(name=name, provider_type=provider_type, settings=settings)
        self._client: Optional[MCPClient] = None
        self._connection: Optional[MCPConnection] = None
        self._healthy = False
        self._health_task: Optional[asyncio.Task] = None
        self._reconnect_lock = asyncio.Lock()
        self._in_flight: Dict[MCPClient, int] = {}
        self._retired: Set[MCPClient] = set()

    async def _initialize(self) -> None:
        """Open the transport and perform the handshake."""
        await self._connect()

        if self.settings.auto_health_check:
            self._health_task = asyncio.create_task(self._health_check_loop())

    async def _connect(self) -> None:
        client = MCPClient(name=self.settings.client_name, timeout=self.settings.timeout)
        connection = await create_transport(
            transport_type=self.settings.transport,
            server_url=self.settings.server_url,
            timeout=self.settings.timeout,
            auth_token=self.settings.auth_token,
            headers=self.settings.headers,
        )
        try:
            await client.initialize(connection)
        except Exception:
            await connection.close()
            raise

        self._client = client
        self._connection = connection
        self._healthy = True
        logger.info(f"MCP client '{self.name}' connected to {self.settings.server_url}")

    async def _shutdown(self) -> None:
        """Stop the health check and close every open transport."""
        if self._health_task is not None:
            self._health_task.cancel()
            await asyncio.gather(self._health_task, return_exceptions=True)
            self._health_task = None

        self._healthy = False
        clients = list(self._retired)
        if self._client is not None:
            clients.append(self._client)
        self._client = None
        self._connection = None
        self._retired.clear()
        self._in_flight.clear()
        for client in clients:
            await client.close()

    async def _replace_connection(self) -> None:
        """Connect a fresh client and retire the current one."""
        logger.info(f"Reconnecting MCP client '{self.name}'")
        stale = self._client
        try:
            await self._connect()
        except Exception as e:
            raise MCPConnectionError(f"Failed to connect to MCP server: {e}") from e

        if stale is not None:
            await self._retire(stale)

    async def _retire(self, client: MCPClient) -> None:
        if self._in_flight.get(client, 0) > 0:
            self._retired.add(client)
            return
        await client.close()

    async def _release(self, client: MCPClient) -> None:
        remaining = self._in_flight.get(client, 0) - 1
        if remaining > 0:
            self._in_flight[client] = remaining
            return
        self._in_flight.pop(client, None)
        if client in self._retired:
            self._retired.discard(client)
            await client.close()

    async def _health_check_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.health_check_interval)
            await self.check_health()

    async def check_health(self) -> bool:
        """Ping the server once.

        A failure marks the connection unhealthy; it never raises and never
        touches calls already in flight.
        """
        client = self._client
        if client is None:
            return False
        try:
            await client.ping(timeout=self.settings.timeout)
        except MCPError as e:
            logger.warning(f"Health check for MCP client '{self.name}' failed: {e}")
            healthy = False
        except Exception:
            logger.exception(f"Health check for MCP client '{self.name}' raised")
            healthy = False
        else:
            healthy = True

        if client is self._client:
            self._healthy = healthy
        return healthy

    def _needs_reconnect(self) -> bool:
        if not self._initialized:
            return False
        return not self._healthy or self._connection is None or not self._connection.is_open

    async def _ensure_connected(self) -> MCPClient:
        if self._needs_reconnect():
            async with self._reconnect_lock:
                if self._needs_reconnect():
                    await self._replace_connection()

        try:
            await self.initialize()
        except ProviderError as e:
            raise MCPConnectionError(f"Failed to connect to MCP server: {e.cause or e.message}") from e

        if self._client is None:
            raise MCPConnectionError("Not connected")
        return self._client

    async def call_tool(self, request: ToolCallRequest, timeout: Optional[float] = None) -> ToolCallOutcome:
        """Call a tool on the MCP server.

        Raises:
            MCPTimeoutError: If no response arrives in time
            MCPConnectionError: If the server cannot be reached
        """
        client = await self._ensure_connected()
        self._in_flight[client] = self._in_flight.get(client, 0) + 1
        try:
            outcome = await client.call_tool(request, timeout if timeout is not None else self.settings.timeout)
        except MCPTimeoutError:
            raise
        except MCPConnectionError as e:
            logger.error(f"Error calling MCP tool '{request.tool}': {e}")
            if client is self._client:
                self._healthy = False
            raise
        finally:
            await self._release(client)

        logger.debug(f"MCP tool '{request.tool}' called, error={outcome.is_error}")
        return outcome

    async def list_tools(self) -> Dict[str, ToolDescriptor]:
        """List available tools from the MCP server."""
        client = await self._ensure_connected()
        return client.get_available_tools()

    def is_connected(self) -> bool:
        """Check if client is connected."""
        return (
            self._initialized
            and self._healthy
            and self._connection is not None
            and self._connection.is_open
        )

    def get_server_info(self) -> Dict[str, Any]:
        """Get information about the connected server."""
        if self._client is None:
            return {"connected": False}

        tools = self._client.get_available_tools()
        return {
            "connected": self.is_connected(),
            "server_url": self.settings.server_url,
            "transport": self.settings.transport.value,
            "server": self._client.server_info,
            "tools_count": len(tools),
            "available_tools": list(tools.keys()),
        }


async def create_mcp_client(
    name: str, server_url: str, transport: MCPTransport = MCPTransport.STREAMABLE, **kwargs: Any
) -> MCPClientProvider:
    """Create and initialize an MCP client provider."""
    settings = MCPClientSettings(server_url=server_url, transport=transport, **kwargs)

    client = MCPClientProvider(name=name, settings=settings)
    await client.initialize()
    return client
