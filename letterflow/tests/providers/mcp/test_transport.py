"""Tests for the MCP transports against real local servers."""

import asyncio
import json

import pytest
import pytest_asyncio
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer, unused_port

from letterflow.providers.mcp.base import (
    MCPConnectionError,
    MCPMessage,
    MCPMessageType,
    MCPProtocolError,
    MCPTimeoutError,
    MCPTransport,
)
from letterflow.providers.mcp.transport import HttpTransport, StreamableTransport, create_transport


def call_message(id: str, word) -> MCPMessage:
    return MCPMessage(
        id=id,
        type=MCPMessageType.REQUEST,
        method="tools/call",
        params={"tool": "countEs", "arguments": {"word": word}},
    )


def ping_message(id: str = "ping-1") -> MCPMessage:
    return MCPMessage(id=id, type=MCPMessageType.REQUEST, method="ping")


async def serve(app: web.Application) -> TestServer:
    server = TestServer(app)
    await server.start_server()
    return server


@pytest_asyncio.fixture
async def reversing_server():
    """WebSocket server that answers each pair of requests in reverse order."""

    async def handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        held = []
        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            held.append(json.loads(msg.data))
            if len(held) == 2:
                for data in reversed(held):
                    await ws.send_str(json.dumps({
                        "id": data["id"],
                        "type": "response",
                        "result": {"echo": data["params"]["arguments"]["word"]},
                    }))
                held = []
        return ws

    app = web.Application()
    app.router.add_get("/mcp/ws", handler)
    server = await serve(app)
    yield server
    await server.close()


@pytest_asyncio.fixture
async def silent_server():
    """Server that accepts messages and never answers."""

    async def ws_handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        async for _ in ws:
            pass
        return ws

    async def http_handler(request):
        await asyncio.sleep(1)
        return web.json_response({})

    app = web.Application()
    app.router.add_get("/mcp/ws", ws_handler)
    app.router.add_post("/mcp", http_handler)
    server = await serve(app)
    yield server
    await server.close()


class TestStreamableTransport:
    """Test StreamableTransport class."""

    def test_ws_url(self):
        """The WebSocket URL is derived from the MCP URL."""
        assert StreamableTransport("http://localhost:8080/mcp/").ws_url == "ws://localhost:8080/mcp/ws"
        assert StreamableTransport("https://tools.local/mcp").ws_url == "wss://tools.local/mcp/ws"

    @pytest.mark.asyncio
    async def test_round_trip(self, mcp_url):
        """Test a request and its response."""
        transport = StreamableTransport(mcp_url)
        await transport.connect()
        try:
            response = await transport.request(call_message("1", "splendiferous"), timeout=5)
        finally:
            await transport.close()

        assert response.id == "1"
        assert response.result == {"success": True, "content": "2"}

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, mcp_url):
        """Connecting twice keeps the same channel."""
        transport = StreamableTransport(mcp_url)
        await transport.connect()
        websocket = transport._websocket
        await transport.connect()

        assert transport._websocket is websocket
        assert transport.is_open
        await transport.close()
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_responses_matched_by_id(self, reversing_server):
        """Responses are matched by id when they arrive out of order."""
        transport = StreamableTransport(str(reversing_server.make_url("/mcp")))
        await transport.connect()
        try:
            first, second = await asyncio.gather(
                transport.request(call_message("a", "first"), timeout=5),
                transport.request(call_message("b", "second"), timeout=5),
            )
        finally:
            await transport.close()

        assert (first.id, first.result) == ("a", {"echo": "first"})
        assert (second.id, second.result) == ("b", {"echo": "second"})

    @pytest.mark.asyncio
    async def test_many_concurrent_calls(self, mcp_url):
        """Many calls share one channel."""
        words = [f"{'e' * i}x" for i in range(20)]
        transport = StreamableTransport(mcp_url)
        await transport.connect()
        try:
            responses = await asyncio.gather(*(
                transport.request(call_message(str(i), word), timeout=5)
                for i, word in enumerate(words)
            ))
        finally:
            await transport.close()

        assert [r.result["content"] for r in responses] == [str(i) for i in range(20)]

    @pytest.mark.asyncio
    async def test_timeout(self, silent_server):
        """A request without a response times out."""
        transport = StreamableTransport(str(silent_server.make_url("/mcp")))
        await transport.connect()
        try:
            with pytest.raises(MCPTimeoutError):
                await transport.request(ping_message(), timeout=0.1)
            assert transport._pending == {}
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_late_response_discarded(self, mcp_url):
        """A response arriving after its timeout is discarded."""
        transport = StreamableTransport(mcp_url)
        await transport.connect()
        try:
            transport._dispatch(json.dumps({"id": "never-sent", "type": "response", "result": {}}))
            response = await transport.request(ping_message("after"), timeout=5)
        finally:
            await transport.close()

        assert response.id == "after"

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """A refused connection raises MCPConnectionError."""
        transport = StreamableTransport(f"http://127.0.0.1:{unused_port()}/mcp")

        with pytest.raises(MCPConnectionError):
            await transport.connect()
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_request_on_closed_channel(self, mcp_url):
        """A request on a closed channel raises MCPConnectionError."""
        transport = StreamableTransport(mcp_url)

        with pytest.raises(MCPConnectionError):
            await transport.request(ping_message(), timeout=1)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, mcp_url):
        """Closing twice is harmless."""
        transport = StreamableTransport(mcp_url)
        await transport.connect()

        await transport.close()
        await transport.close()

        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_server_notification_reaches_handler(self, mcp_url, tool_server_provider):
        """Server notifications reach the notification handler."""
        received = []
        arrived = asyncio.Event()

        def on_notification(message):
            received.append(message)
            arrived.set()

        transport = StreamableTransport(mcp_url)
        transport.add_notification_handler(on_notification)
        await transport.connect()
        try:
            await transport.request(ping_message(), timeout=5)
            delivered = await tool_server_provider.broadcast(
                MCPMessage(type=MCPMessageType.NOTIFICATION, method="notifications/tools/list_changed")
            )
            await asyncio.wait_for(arrived.wait(), timeout=5)
        finally:
            await transport.close()

        assert delivered == 1
        assert received[0].method == "notifications/tools/list_changed"


class TestHttpTransport:
    """Test HttpTransport class."""

    @pytest.mark.asyncio
    async def test_round_trip(self, mcp_url):
        """Test a request and its response."""
        transport = HttpTransport(mcp_url)
        await transport.connect()
        try:
            response = await transport.request(call_message("1", "splendiferous"), timeout=5)
        finally:
            await transport.close()

        assert response.result == {"success": True, "content": "2"}

    @pytest.mark.asyncio
    async def test_notification_accepted(self, mcp_url):
        """A notification is accepted without a response."""
        transport = HttpTransport(mcp_url)
        await transport.connect()
        try:
            await transport.notify(MCPMessage(type=MCPMessageType.NOTIFICATION, method="notifications/initialized"))
            with pytest.raises(MCPProtocolError):
                await transport.request(
                    MCPMessage(type=MCPMessageType.REQUEST, method="ping"), timeout=5
                )
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_http_error_status(self, tool_server):
        """An HTTP error status raises MCPConnectionError."""
        transport = HttpTransport(str(tool_server.make_url("/missing")))
        await transport.connect()
        try:
            with pytest.raises(MCPConnectionError) as exc_info:
                await transport.request(ping_message(), timeout=5)
        finally:
            await transport.close()

        assert "HTTP 404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """A refused connection raises MCPConnectionError."""
        transport = HttpTransport(f"http://127.0.0.1:{unused_port()}/mcp")
        await transport.connect()
        try:
            with pytest.raises(MCPConnectionError):
                await transport.request(ping_message(), timeout=5)
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_timeout(self, silent_server):
        """A request without a response times out."""
        transport = HttpTransport(str(silent_server.make_url("/mcp")))
        await transport.connect()
        try:
            with pytest.raises(MCPTimeoutError):
                await transport.request(ping_message(), timeout=0.1)
        finally:
            await transport.close()


class TestCreateTransport:
    """Test create_transport factory."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,cls", [
        (MCPTransport.STREAMABLE, StreamableTransport),
        (MCPTransport.HTTP, HttpTransport),
    ])
    async def test_creates_connected_transport(self, mcp_url, kind, cls):
        """The factory returns a connected transport of the right type."""
        transport = await create_transport(kind, mcp_url, timeout=5)
        try:
            assert isinstance(transport, cls)
            assert transport.is_open
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_failed_connect_raises(self):
        """A failed connect raises MCPConnectionError."""
        with pytest.raises(MCPConnectionError):
            await create_transport(MCPTransport.STREAMABLE, f"http://127.0.0.1:{unused_port()}/mcp", timeout=5)
