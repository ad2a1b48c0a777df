from .provider import MCPClientProvider, MCPClientSettings, create_mcp_client

__all__ = ['MCPClientProvider', 'MCPClientSettings', 'create_mcp_client']
