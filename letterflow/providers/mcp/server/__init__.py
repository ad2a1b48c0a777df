from .provider import MCPServerProvider, MCPServerSettings, RouteToolHandler

__all__ = ['MCPServerProvider', 'MCPServerSettings', 'RouteToolHandler']
