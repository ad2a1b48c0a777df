"""letterflow: a single tool-call agent delegating letter counting to an MCP tool server."""

__version__ = "0.1.0"
