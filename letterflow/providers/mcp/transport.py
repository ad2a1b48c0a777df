"""MCP transport implementations."""

import asyncio
import json
import logging
from typing import Callable, Dict, List, Optional

import aiohttp

from .base import (
    INVALID_REQUEST,
    MCPConnection,
    MCPConnectionError,
    MCPMessage,
    MCPMessageType,
    MCPProtocolError,
    MCPTimeoutError,
    MCPTransport,
    parse_message,
)

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[MCPMessage], None]


def _build_headers(auth_token: Optional[str], headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    result = dict(headers or {})
    if auth_token:
        result["Authorization"] = f"Bearer {auth_token}"
    return result


class StreamableTransport(MCPConnection):
    """Persistent WebSocket transport for MCP.

    A background reader matches responses to pending requests by id, so
    any number of requests may be in flight and their responses may
    arrive in any order. Anything else the server pushes goes to the
    registered notification handlers.
    """

    def __init__(
        self,
        server_url: str,
        auth_token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.server_url = server_url.rstrip("/")
        self.auth_token = auth_token
        self.headers = headers or {}
        self._session: Optional[aiohttp.ClientSession] = None
        self._websocket: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._notification_handlers: List[NotificationHandler] = []

    @property
    def ws_url(self) -> str:
        """WebSocket endpoint derived from the server URL."""
        url = self.server_url.replace("http://", "ws://").replace("https://", "wss://")
        return f"{url}/ws"

    @property
    def is_open(self) -> bool:
        return self._websocket is not None and not self._websocket.closed

    def add_notification_handler(self, handler: NotificationHandler) -> None:
        self._notification_handlers.append(handler)

    async def connect(self) -> None:
        """Open the WebSocket channel."""
        if self.is_open:
            return
        # drop a channel the server already closed
        await self.close()

        self._session = aiohttp.ClientSession(headers=_build_headers(self.auth_token, self.headers))
        try:
            self._websocket = await self._session.ws_connect(self.ws_url)
        except Exception as e:
            await self._session.close()
            self._session = None
            raise MCPConnectionError(f"Failed to connect to WebSocket server: {e}") from e

        self._reader_task = asyncio.create_task(self._read_loop(self._websocket))
        logger.debug(f"Connected to MCP WebSocket server: {self.ws_url}")

    async def _read_loop(self, websocket: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in websocket:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {websocket.exception()}")
                    break
        finally:
            self._fail_pending(MCPConnectionError("Connection lost"))

    def _dispatch(self, raw: str) -> None:
        try:
            message = parse_message(json.loads(raw))
        except (json.JSONDecodeError, MCPProtocolError) as e:
            logger.warning(f"Discarding invalid message: {e}")
            return

        if message.type == MCPMessageType.RESPONSE:
            future = self._pending.pop(message.id or "", None)
            if future is None:
                logger.debug(f"Discarding response without pending request: {message.id}")
            elif not future.done():
                future.set_result(message)
            return

        for handler in list(self._notification_handlers):
            try:
                handler(message)
            except Exception as e:
                logger.warning(f"Notification handler failed for '{message.method}': {e}")

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)

    async def _send(self, message: MCPMessage) -> None:
        if not self.is_open or self._websocket is None:
            raise MCPConnectionError("Connection closed")
        try:
            await self._websocket.send_str(json.dumps(message.to_wire()))
        except Exception as e:
            raise MCPConnectionError(f"Failed to send message: {e}") from e

    async def request(self, message: MCPMessage, timeout: float) -> MCPMessage:
        """Send a request and wait for the response carrying the same id."""
        if message.id is None:
            raise MCPProtocolError("Requests must carry an id", code=INVALID_REQUEST)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[message.id] = future
        try:
            await self._send(message)
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise MCPTimeoutError(f"No response to '{message.method}' within {timeout} seconds") from e
        finally:
            self._pending.pop(message.id, None)

    async def notify(self, message: MCPMessage) -> None:
        await self._send(message)

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self._session is None:
            return

        session, self._session = self._session, None
        websocket, self._websocket = self._websocket, None
        try:
            if websocket is not None:
                await websocket.close()
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")
        finally:
            if self._reader_task is not None:
                self._reader_task.cancel()
                await asyncio.gather(self._reader_task, return_exceptions=True)
                self._reader_task = None
            await session.close()
            self._fail_pending(MCPConnectionError("Connection closed"))


class HttpTransport(MCPConnection):
    """Request/response transport: one HTTP POST per message."""

    def __init__(
        self,
        server_url: str,
        auth_token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.server_url = server_url.rstrip("/")
        self.auth_token = auth_token
        self.headers = headers or {}
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed

    async def connect(self) -> None:
        if self.is_open:
            return
        self._session = aiohttp.ClientSession(headers=_build_headers(self.auth_token, self.headers))
        logger.debug(f"Opened MCP HTTP session for {self.server_url}")

    async def _post(self, message: MCPMessage, timeout: float) -> Optional[MCPMessage]:
        if not self.is_open or self._session is None:
            raise MCPConnectionError("Connection closed")

        try:
            async with self._session.post(
                self.server_url,
                json=message.to_wire(),
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as response:
                if response.status >= 400:
                    raise MCPConnectionError(f"HTTP {response.status}: {await response.text()}")
                body = await response.text()
        except asyncio.TimeoutError as e:
            raise MCPTimeoutError(f"No response to '{message.method}' within {timeout} seconds") from e
        except aiohttp.ClientError as e:
            raise MCPConnectionError(f"Failed to send message: {e}") from e

        if not body:
            return None
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise MCPConnectionError(f"Invalid JSON received: {e}") from e
        return parse_message(data)

    async def request(self, message: MCPMessage, timeout: float) -> MCPMessage:
        response = await self._post(message, timeout)
        if response is None:
            raise MCPProtocolError(f"Empty response to '{message.method}'", code=INVALID_REQUEST)
        return response

    async def notify(self, message: MCPMessage, timeout: float = 30.0) -> None:
        await self._post(message, timeout)

    async def close(self) -> None:
        if self._session is None:
            return
        session, self._session = self._session, None
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error closing HTTP session: {e}")


async def create_transport(
    transport_type: MCPTransport,
    server_url: str,
    timeout: float = 30.0,
    auth_token: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None
) -> MCPConnection:
    """Create and connect appropriate transport."""

    transport: MCPConnection

    if transport_type == MCPTransport.STREAMABLE:
        transport = StreamableTransport(server_url, auth_token, headers)
    elif transport_type == MCPTransport.HTTP:
        transport = HttpTransport(server_url, auth_token, headers)
    else:
        raise MCPConnectionError(f"Unsupported transport type: {transport_type}")

    try:
        await asyncio.wait_for(transport.connect(), timeout=timeout)
        return transport
    except asyncio.TimeoutError as e:
        await transport.close()
        raise MCPConnectionError(f"Connection timeout after {timeout} seconds") from e
    except Exception:
        await transport.close()
        raise
