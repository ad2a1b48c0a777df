"""Provider implementations: MCP client and server, LLM completion."""
