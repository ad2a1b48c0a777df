"""Base classes and models for MCP integration.

Holds the wire models shared by both ends of the protocol, the tool
descriptor with its argument schema, the server-side tool adapter and the
client that issues tool calls over an ``MCPConnection``.
"""

import itertools
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from letterflow.core.errors import ErrorContext, ValidationError
from letterflow.core.models import StrictBaseModel

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

# JSON-RPC error codes used in response envelopes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
REQUEST_TIMEOUT = -32001
CONNECTION_ERROR = -32003


class MCPTransport(str, Enum):
    """MCP transport variants."""
    STREAMABLE = "streamable"  # persistent bidirectional WebSocket channel
    HTTP = "http"              # one POST per request


class MCPMessageType(str, Enum):
    """MCP message types."""
    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"


class ArgumentType(str, Enum):
    """JSON types a tool argument may declare."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


_PYTHON_TYPES: Dict[ArgumentType, Any] = {
    ArgumentType.STRING: str,
    ArgumentType.INTEGER: int,
    ArgumentType.NUMBER: float,
    ArgumentType.BOOLEAN: bool,
    ArgumentType.OBJECT: Dict[str, Any],
    ArgumentType.ARRAY: List[Any],
}


class MCPToolInputSchema(BaseModel):
    """JSON schema for MCP tool input."""
    type: str = "object"
    properties: Dict[str, Any] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)


class ToolArgument(StrictBaseModel):
    """Schema of one named tool argument."""

    type: ArgumentType = Field(default=ArgumentType.STRING, description="JSON type of the argument")
    description: str = Field(default="", description="Argument description shown to clients")
    required: bool = Field(default=True, description="Whether the argument must be supplied")


class ToolDescriptor(StrictBaseModel):
    """A named, schema-described tool.

    Immutable once registered; a server binds each descriptor to exactly
    one handler.
    """

    name: str = Field(..., min_length=1, description="Tool name, unique within a server")
    description: str = Field(..., description="What the tool does")
    arguments: Dict[str, ToolArgument] = Field(default_factory=dict, description="Argument schema")

    def input_schema(self) -> MCPToolInputSchema:
        """Render the argument schema as a JSON schema object."""
        properties = {
            name: {"type": argument.type.value, "description": argument.description}
            for name, argument in self.arguments.items()
        }
        required = [name for name, argument in self.arguments.items() if argument.required]
        return MCPToolInputSchema(properties=properties, required=required)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for a ``tools/list`` result."""
        data = self.model_dump(mode="json")
        data["input_schema"] = self.input_schema().model_dump()
        return data

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "ToolDescriptor":
        """Parse a descriptor from a ``tools/list`` entry."""
        arguments = {
            name: ToolArgument(
                type=ArgumentType(argument.get("type", ArgumentType.STRING.value)),
                description=argument.get("description", ""),
                required=argument.get("required", True),
            )
            for name, argument in data.get("arguments", {}).items()
        }
        return cls(name=data["name"], description=data.get("description", ""), arguments=arguments)


def build_arguments_model(descriptor: ToolDescriptor) -> Type[BaseModel]:
    """Build a strict pydantic model validating a descriptor's arguments.

    Types are not coerced: a number where a string is declared is a
    violation, as is a missing required or an undeclared argument.
    """
    fields: Dict[str, Tuple[Any, Any]] = {}
    for name, argument in descriptor.arguments.items():
        python_type = _PYTHON_TYPES[argument.type]
        if argument.required:
            fields[name] = (python_type, Field(..., description=argument.description))
        else:
            fields[name] = (Optional[python_type], Field(None, description=argument.description))

    return create_model(  # type: ignore[call-overload]
        f"{descriptor.name}Arguments",
        __config__=ConfigDict(strict=True, extra="forbid"),
        **fields,
    )


class ToolCallRequest(BaseModel):
    """A single request to invoke a tool with concrete arguments."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    tool: str = Field(..., min_length=1, description="Name of the tool to call")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Dynamically typed arguments")


class ToolErrorKind(str, Enum):
    """Why a tool call produced an error outcome."""
    VALIDATION = "validation"
    EXECUTION = "execution"
    UNKNOWN_TOOL = "unknown_tool"


class ToolSuccess(BaseModel):
    """Successful tool call outcome."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    success: Literal[True] = True
    content: Union[str, Dict[str, Any]]

    @property
    def is_error(self) -> bool:
        return False

    @property
    def text(self) -> str:
        """Content as text; structured payloads are JSON encoded."""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content)


class ToolError(BaseModel):
    """Failed tool call outcome. Never raised, always returned."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    success: Literal[False] = False
    error: str
    kind: ToolErrorKind = ToolErrorKind.EXECUTION

    @property
    def is_error(self) -> bool:
        return True


ToolCallOutcome = Union[ToolSuccess, ToolError]


class MCPMessage(BaseModel):
    """Base MCP message envelope."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    type: MCPMessageType
    method: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    result: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class MCPConnection(Protocol):
    """Protocol for MCP connections, independent of the wire variant."""

    @property
    def is_open(self) -> bool:
        """Whether the channel is currently usable."""
        ...

    async def connect(self) -> None:
        """Open the channel. Calling it on an open channel does nothing."""
        ...

    async def request(self, message: MCPMessage, timeout: float) -> MCPMessage:
        """Send a request and wait at most ``timeout`` seconds for its response."""
        ...

    async def notify(self, message: MCPMessage) -> None:
        """Send a message that expects no response."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...


class MCPError(Exception):
    """Base MCP error."""

    def __init__(self, message: str, code: int = -1, data: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format for MCP messages."""
        result: Dict[str, Any] = {
            "code": self.code,
            "message": self.message
        }
        if self.data is not None:
            result["data"] = self.data
        return result


class MCPConnectionError(MCPError):
    """Connection refused, lost or unusable."""

    def __init__(self, message: str, code: int = CONNECTION_ERROR):
        super().__init__(f"Connection error: {message}", code=code)


class MCPTimeoutError(MCPConnectionError):
    """No response arrived within the allowed time."""

    def __init__(self, message: str):
        super().__init__(message, code=REQUEST_TIMEOUT)


class MCPProtocolError(MCPError):
    """Malformed message or an error envelope returned by the peer."""

    @classmethod
    def from_envelope(cls, error: Dict[str, Any]) -> "MCPProtocolError":
        return cls(
            str(error.get("message", "Unknown protocol error")),
            code=int(error.get("code", INTERNAL_ERROR)),
            data=error.get("data"),
        )


def parse_message(data: Any) -> MCPMessage:
    """Validate a decoded JSON payload as an MCP envelope."""
    if not isinstance(data, dict):
        raise MCPProtocolError("Message must be a JSON object", code=INVALID_REQUEST)
    try:
        return MCPMessage.model_validate(data)
    except PydanticValidationError as e:
        raise MCPProtocolError(f"Invalid message: {e}", code=INVALID_REQUEST) from e


def outcome_from_wire(data: Any) -> ToolCallOutcome:
    """Parse a ``tools/call`` result into a typed outcome."""
    if not isinstance(data, dict) or "success" not in data:
        raise MCPProtocolError(f"Malformed tool call result: {data!r}", code=INTERNAL_ERROR)
    try:
        if data["success"] is True:
            return ToolSuccess.model_validate(data)
        return ToolError.model_validate(data)
    except PydanticValidationError as e:
        raise MCPProtocolError(f"Malformed tool call result: {e}", code=INTERNAL_ERROR) from e


ToolHandler = Callable[[Dict[str, Any]], ToolCallOutcome]


class MCPClient:
    """Client side of the protocol.

    One instance is bound to one connection. Requests are correlated by id,
    so any number of calls may be in flight at once when the connection
    supports it.
    """

    def __init__(self, name: str = "letterflow-client", timeout: float = 30.0):
        self.name = name
        self.timeout = timeout
        self.connection: Optional[MCPConnection] = None
        self.server_info: Dict[str, Any] = {}
        self._tools: Dict[str, ToolDescriptor] = {}
        self._request_ids = itertools.count(1)

    async def initialize(self, connection: MCPConnection) -> None:
        """Initialize client with connection."""
        self.connection = connection

        await self._handshake()
        await self._discover_tools()

        logger.info(f"MCP client '{self.name}' initialized with {len(self._tools)} tools")

    async def _handshake(self) -> None:
        """Perform MCP handshake."""
        response = await self._send_request("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "clientInfo": {
                "name": self.name,
                "version": "1.0.0"
            }
        })
        result = response.result or {}
        self.server_info = result.get("serverInfo", {})
        logger.debug(f"MCP handshake completed with {self.server_info}")

    async def _discover_tools(self) -> None:
        """List the tools the server advertises."""
        response = await self._send_request("tools/list")
        self._tools = {}
        for tool_data in (response.result or {}).get("tools", []):
            tool = ToolDescriptor.from_wire(tool_data)
            self._tools[tool.name] = tool

    async def call_tool(self, request: ToolCallRequest, timeout: Optional[float] = None) -> ToolCallOutcome:
        """Call a tool on the server and return its outcome."""
        response = await self._send_request("tools/call", request.model_dump(), timeout)
        return outcome_from_wire(response.result)

    async def ping(self, timeout: Optional[float] = None) -> None:
        """Round-trip a ``ping`` request."""
        await self._send_request("ping", timeout=timeout)

    async def _send_request(
        self, method: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None
    ) -> MCPMessage:
        """Send request and wait for its correlated response."""
        if not self.connection:
            raise MCPConnectionError("Not connected")

        request = MCPMessage(
            id=str(next(self._request_ids)),
            type=MCPMessageType.REQUEST,
            method=method,
            params=params
        )
        response = await self.connection.request(request, timeout if timeout is not None else self.timeout)

        if response.error:
            raise MCPProtocolError.from_envelope(response.error)

        return response

    def get_available_tools(self) -> Dict[str, ToolDescriptor]:
        """Get available tools."""
        return self._tools.copy()

    async def close(self) -> None:
        """Close the connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None


class MCPServer:
    """Server side tool adapter.

    Registers tools with their handlers, validates tool-call arguments
    against the bound descriptor and maps every call to exactly one
    outcome. Nothing raised by a handler escapes ``on_tool_call``.
    """

    def __init__(self, name: str = "letterflow-server", version: str = "1.0.0"):
        self.name = name
        self.version = version
        self._tools: Dict[str, ToolDescriptor] = {}
        self._tool_handlers: Dict[str, ToolHandler] = {}
        self._argument_models: Dict[str, Type[BaseModel]] = {}
        self._methods = {
            "initialize": self._handle_initialize,
            "tools/list": self._handle_list_tools,
            "tools/call": self._handle_call_tool,
            "ping": self._handle_ping,
        }

    def register_tool(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        """Register a tool with its handler."""
        if descriptor.name in self._tools:
            raise ValueError(f"Tool '{descriptor.name}' is already registered")

        self._argument_models[descriptor.name] = build_arguments_model(descriptor)
        self._tools[descriptor.name] = descriptor
        self._tool_handlers[descriptor.name] = handler
        logger.debug(f"Registered MCP tool: {descriptor.name}")

    def get_tools(self) -> Dict[str, ToolDescriptor]:
        return self._tools.copy()

    def on_tool_call(self, request: ToolCallRequest) -> ToolCallOutcome:
        """Validate a tool call and delegate it to the bound handler."""
        descriptor = self._tools.get(request.tool)
        if descriptor is None:
            logger.warning(f"Tool call for unknown tool '{request.tool}'")
            return ToolError(error=f"unknown tool: {request.tool}", kind=ToolErrorKind.UNKNOWN_TOOL)

        try:
            arguments = self._validate_arguments(descriptor, request.arguments)
        except ValidationError as e:
            logger.info(f"Rejected call to '{descriptor.name}': {e.describe()}")
            return ToolError(
                error=f"Invalid arguments for tool '{descriptor.name}': {e.describe()}",
                kind=ToolErrorKind.VALIDATION,
            )

        try:
            return self._tool_handlers[descriptor.name](arguments)
        except Exception:
            logger.exception(f"Handler for tool '{descriptor.name}' raised")
            return ToolError(error="Tool execution failed", kind=ToolErrorKind.EXECUTION)

    def _validate_arguments(self, descriptor: ToolDescriptor, arguments: Dict[str, Any]) -> Dict[str, Any]:
        model = self._argument_models[descriptor.name]
        try:
            return model.model_validate(arguments).model_dump()
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(
                e,
                ErrorContext.create(
                    flow_name=descriptor.name,
                    error_type="ValidationError",
                    error_location=f"{self.__class__.__name__}._validate_arguments",
                    component=self.name,
                    operation="validate_tool_arguments",
                ),
                message=f"Invalid arguments for tool '{descriptor.name}'",
            ) from e

    async def handle_request(self, request: MCPMessage) -> Optional[MCPMessage]:
        """Handle an incoming message.

        Returns the response envelope, or None for notifications.
        """
        if request.type == MCPMessageType.NOTIFICATION or request.id is None:
            logger.debug(f"Received notification: {request.method}")
            return None

        handler = self._methods.get(request.method or "")
        if handler is None:
            return self._error_response(request, METHOD_NOT_FOUND, f"Method not found: {request.method}")

        try:
            return MCPMessage(id=request.id, type=MCPMessageType.RESPONSE, result=handler(request.params or {}))
        except PydanticValidationError as e:
            return self._error_response(request, INVALID_PARAMS, f"Invalid params: {e}")
        except Exception as e:
            logger.error(f"Error handling request: {e}", exc_info=True)
            return self._error_response(request, INTERNAL_ERROR, "Internal error")

    def _handle_initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        client_info = params.get("clientInfo", {})
        logger.info(f"MCP client connected: {client_info.get('name', 'unknown')}")
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": self.name,
                "version": self.version
            }
        }

    def _handle_list_tools(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"tools": [tool.to_wire() for tool in self._tools.values()]}

    def _handle_call_tool(self, params: Dict[str, Any]) -> Dict[str, Any]:
        request = ToolCallRequest.model_validate(params)
        outcome = self.on_tool_call(request)
        return outcome.model_dump(mode="json")

    def _handle_ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def _error_response(self, request: MCPMessage, code: int, message: str) -> MCPMessage:
        return MCPMessage(
            id=request.id,
            type=MCPMessageType.RESPONSE,
            error={"code": code, "message": message}
        )
