"""MCP (Model Context Protocol) building blocks.

Client and server providers live in ``letterflow.providers.mcp.client``
and ``letterflow.providers.mcp.server``.
"""

from .base import (
    ArgumentType,
    MCPClient,
    MCPConnection,
    MCPConnectionError,
    MCPError,
    MCPMessage,
    MCPMessageType,
    MCPProtocolError,
    MCPServer,
    MCPTimeoutError,
    MCPTransport,
    ToolArgument,
    ToolCallOutcome,
    ToolCallRequest,
    ToolDescriptor,
    ToolError,
    ToolErrorKind,
    ToolSuccess,
)
from .transport import HttpTransport, StreamableTransport, create_transport

__all__ = [
    'ArgumentType',
    'HttpTransport',
    'MCPClient',
    'MCPConnection',
    'MCPConnectionError',
    'MCPError',
    'MCPMessage',
    'MCPMessageType',
    'MCPProtocolError',
    'MCPServer',
    'MCPTimeoutError',
    'MCPTransport',
    'StreamableTransport',
    'ToolArgument',
    'ToolCallOutcome',
    'ToolCallRequest',
    'ToolDescriptor',
    'ToolError',
    'ToolErrorKind',
    'ToolSuccess',
    'create_transport',
]
