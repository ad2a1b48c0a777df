"""MCP Server Provider implementation."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

import aiohttp_cors
from aiohttp import WSCloseCode, WSMsgType, web
from pydantic import Field

from letterflow.flows.registry import RouteRegistry
from letterflow.flows.routing import RoutingPipeline
from letterflow.providers.core.base import Provider, ProviderSettings
from letterflow.providers.mcp.base import (
    PARSE_ERROR,
    MCPMessage,
    MCPMessageType,
    MCPProtocolError,
    MCPServer,
    ToolCallOutcome,
    ToolDescriptor,
    parse_message,
)

logger = logging.getLogger(__name__)


async def _read_text(request: web.Request) -> str:
    """Request body decoded with its declared charset, UTF-8 by default."""
    body = await request.read()
    return body.decode(request.charset or "utf-8")


class MCPServerSettings(ProviderSettings):
    """Settings for MCP server provider."""
    server_name: str = Field("letterflow-tool-server", description="Name of the MCP server")
    server_version: str = Field("1.0.0", description="Version of the MCP server")
    host: str = Field("localhost", description="Host to bind server to")
    port: int = Field(8080, ge=0, le=65535, description="Port to bind server to")
    mcp_path: str = Field("/mcp", description="Path of the MCP endpoint; WebSocket is served under '<path>/ws'")
    rest_prefix: str = Field("/camel", description="Prefix of the raw-body REST routes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Origins allowed by CORS")


class RouteToolHandler:
    """Binds a tool to one routing pipeline.

    The validated value of a single named argument becomes the pipeline
    payload.
    """

    def __init__(self, pipeline: RoutingPipeline, argument: str):
        self.pipeline = pipeline
        self.argument = argument

    def __call__(self, arguments: Dict[str, Any]) -> ToolCallOutcome:
        return self.pipeline.handle(arguments[self.argument])

    def __repr__(self) -> str:
        return f"RouteToolHandler(route={self.pipeline.name!r}, argument={self.argument!r})"


class MCPServerProvider(Provider[MCPServerSettings]):
    """Provider that exposes routing pipelines as MCP tools over HTTP.

    Serves the request/response endpoint, the persistent WebSocket
    endpoint, raw-body REST routes and a health check from one aiohttp
    application.
    """

    settings_class = MCPServerSettings

    def __init__(
        self,
        name: str = "mcp-server",
        provider_type: str = "mcp_server",
        settings: Optional[MCPServerSettings] = None,
        routes: Optional[RouteRegistry] = None,
    ):
        super().__init__(name=name, provider_type=provider_type, settings=settings)
        self._routes = routes if routes is not None else RouteRegistry()
        self._server = MCPServer(name=self.settings.server_name, version=self.settings.server_version)
        self._runner: Optional[web.AppRunner] = None
        self._websockets: Set[web.WebSocketResponse] = set()
        self._running = False

    @property
    def server(self) -> MCPServer:
        return self._server

    @property
    def routes(self) -> RouteRegistry:
        return self._routes

    def register_route_tool(self, descriptor: ToolDescriptor, route: str, argument: str) -> None:
        """Expose a registered route as a tool.

        Raises:
            KeyError: If the route is unknown
            ValueError: If the argument is not declared or the tool exists
        """
        if argument not in descriptor.arguments:
            raise ValueError(f"Tool '{descriptor.name}' declares no argument '{argument}'")
        self._server.register_tool(descriptor, RouteToolHandler(self._routes.get(route), argument))
        logger.debug(f"Registered route '{route}' as MCP tool '{descriptor.name}'")

    def build_app(self) -> web.Application:
        """Build the aiohttp application serving all endpoints."""
        app = web.Application()

        cors = aiohttp_cors.setup(app, defaults={
            origin: aiohttp_cors.ResourceOptions(
                allow_credentials=True,
                expose_headers="*",
                allow_headers="*",
                allow_methods="*"
            )
            for origin in self.settings.cors_origins
        })

        mcp_path = self.settings.mcp_path.rstrip("/")
        app.router.add_post(mcp_path, self._handle_http_message)
        app.router.add_get(f"{mcp_path}/ws", self._handle_websocket)
        app.router.add_post(f"{self.settings.rest_prefix.rstrip('/')}/{{route}}", self._handle_rest_route)
        app.router.add_get('/health', self._handle_health)

        for route in list(app.router.routes()):
            cors.add(route)

        app.on_shutdown.append(self._close_websockets)
        return app

    async def _initialize(self) -> None:
        """Start the HTTP listener."""
        runner = web.AppRunner(self.build_app())
        await runner.setup()
        try:
            site = web.TCPSite(runner, self.settings.host, self.settings.port)
            await site.start()
        except Exception:
            await runner.cleanup()
            raise

        self._runner = runner
        self._running = True
        logger.info(f"MCP server '{self.name}' started on {self.settings.host}:{self.settings.port}")

    async def _shutdown(self) -> None:
        """Stop the HTTP listener."""
        self._running = False
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()

    async def _dispatch(self, raw: str) -> Optional[Dict[str, Any]]:
        """Decode one raw message, handle it and return the response envelope."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            return {
                "type": MCPMessageType.RESPONSE.value,
                "error": {"code": PARSE_ERROR, "message": f"Parse error: {e}"},
            }

        try:
            message = parse_message(data)
        except MCPProtocolError as e:
            envelope: Dict[str, Any] = {"type": MCPMessageType.RESPONSE.value, "error": e.to_dict()}
            if isinstance(data, dict) and isinstance(data.get("id"), str):
                envelope["id"] = data["id"]
            return envelope

        response = await self._server.handle_request(message)
        return response.to_wire() if response is not None else None

    async def _handle_http_message(self, request: web.Request) -> web.StreamResponse:
        """Handle one request/response exchange."""
        try:
            raw = await _read_text(request)
        except (UnicodeDecodeError, LookupError) as e:
            return web.json_response({
                "type": MCPMessageType.RESPONSE.value,
                "error": {"code": PARSE_ERROR, "message": f"Parse error: {e}"},
            })

        envelope = await self._dispatch(raw)
        if envelope is None:
            return web.Response(status=202)
        return web.json_response(envelope)

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle a persistent WebSocket session.

        Each inbound message is served in its own task so a slow call does
        not hold up the ones behind it.
        """
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self._websockets.add(ws)
        tasks: Set[asyncio.Task] = set()

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    task = asyncio.create_task(self._serve_ws_message(ws, msg.data))
                    tasks.add(task)
                    task.add_done_callback(tasks.discard)
                elif msg.type == WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {ws.exception()}")
        finally:
            self._websockets.discard(ws)
            for task in list(tasks):
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        return ws

    async def _serve_ws_message(self, ws: web.WebSocketResponse, raw: str) -> None:
        envelope = await self._dispatch(raw)
        if envelope is None or ws.closed:
            return
        try:
            await ws.send_str(json.dumps(envelope))
        except ConnectionResetError as e:
            logger.warning(f"Could not deliver response {envelope.get('id')}: {e}")
        except Exception:
            logger.exception(f"Failed to send response {envelope.get('id')}")

    async def _handle_rest_route(self, request: web.Request) -> web.Response:
        """Feed the raw request body straight into a routing pipeline."""
        route_name = request.match_info["route"]
        try:
            pipeline = self._routes.get(route_name)
        except KeyError:
            raise web.HTTPNotFound(text=f"Unknown route: {route_name}")

        try:
            payload = await _read_text(request)
        except (UnicodeDecodeError, LookupError) as e:
            raise web.HTTPBadRequest(text=f"Undecodable request body: {e}")

        outcome = pipeline.handle(payload)
        if outcome.is_error:
            return web.Response(status=500, text=outcome.error)  # type: ignore[union-attr]
        return web.Response(text=outcome.text)  # type: ignore[union-attr]

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle health check requests."""
        return web.json_response({
            "status": "healthy",
            "server_name": self.settings.server_name,
            "version": self.settings.server_version,
            "tools_count": len(self._server.get_tools()),
            "routes": self._routes.list(),
        })

    async def broadcast(self, notification: MCPMessage) -> int:
        """Push a message to every open WebSocket session.

        Returns:
            Number of sessions the message was delivered to
        """
        payload = json.dumps(notification.to_wire())
        delivered = 0
        for ws in list(self._websockets):
            if ws.closed:
                continue
            try:
                await ws.send_str(payload)
                delivered += 1
            except ConnectionResetError as e:
                logger.warning(f"Dropping notification for closed session: {e}")
        return delivered

    async def _close_websockets(self, app: web.Application) -> None:
        for ws in list(self._websockets):
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")

    def get_server_info(self) -> Dict[str, Any]:
        """Get server information."""
        tools = self._server.get_tools()
        return {
            "running": self._running,
            "name": self.settings.server_name,
            "version": self.settings.server_version,
            "host": self.settings.host,
            "port": self.settings.port,
            "tools_count": len(tools),
            "available_tools": list(tools.keys()),
            "routes": self._routes.list(),
        }

    def is_running(self) -> bool:
        """Check if the server is running."""
        return self._running
