"""Application configuration using Pydantic Settings.

One flat settings object read from ``LETTERFLOW_*`` environment variables
(and an optional ``.env`` file). Components never read the environment
themselves; they receive the strict settings models built here.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from letterflow.agent.models import DEFAULT_SYSTEM_DIRECTIVE, AgentSettings, FinalizationMode
from letterflow.providers.llm.ollama.provider import OllamaSettings
from letterflow.providers.mcp.base import MCPTransport
from letterflow.providers.mcp.client.provider import MCPClientSettings
from letterflow.providers.mcp.server.provider import MCPServerSettings


class AppSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="LETTERFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # HTTP façade
    host: str = Field(default="127.0.0.1", description="Façade bind host")
    port: int = Field(default=8000, description="Façade bind port")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")
    log_level: str = Field(default="info", description="Root log level")

    # Tool server
    tool_server_name: str = Field(default="letterflow-tool-server", description="Name announced by the tool server")
    tool_server_host: str = Field(default="localhost", description="Tool server bind host")
    tool_server_port: int = Field(default=8080, description="Tool server bind port")

    # Tool client
    mcp_server_url: str = Field(default="http://localhost:8080/mcp", description="Tool server MCP endpoint")
    mcp_transport: MCPTransport = Field(default=MCPTransport.STREAMABLE, description="streamable or http")
    mcp_client_name: str = Field(default="count_es", description="Client name sent in the handshake")
    mcp_timeout: float = Field(default=30.0, gt=0, description="Connect and request timeout in seconds")
    mcp_auto_health_check: bool = Field(default=False, description="Ping the tool server periodically")
    mcp_health_check_interval: float = Field(default=300.0, gt=0, description="Seconds between pings")
    mcp_auth_token: Optional[str] = Field(default=None, description="Bearer token for the tool server")

    # Agent
    system_directive: str = Field(default=DEFAULT_SYSTEM_DIRECTIVE, description="Agent directive")
    tool_name: str = Field(default="countEs", description="Tool the agent calls")
    tool_argument: str = Field(default="word", description="Argument receiving the user input")
    finalization: FinalizationMode = Field(default=FinalizationMode.VERBATIM, description="verbatim or reword")
    tool_timeout: float = Field(default=30.0, gt=0, description="Seconds to wait for a tool outcome")

    # Completion provider (reword finalization only)
    ollama_base_url: str = Field(default="http://localhost:11434", description="Ollama daemon URL")
    ollama_model: str = Field(default="granite4:1b", description="Ollama model tag")
    ollama_temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="Sampling temperature")
    ollama_timeout: float = Field(default=60.0, gt=0, description="Completion timeout in seconds")

    def mcp_client_settings(self) -> MCPClientSettings:
        return MCPClientSettings(
            server_url=self.mcp_server_url,
            transport=self.mcp_transport,
            client_name=self.mcp_client_name,
            timeout=self.mcp_timeout,
            auto_health_check=self.mcp_auto_health_check,
            health_check_interval=self.mcp_health_check_interval,
            auth_token=self.mcp_auth_token,
        )

    def mcp_server_settings(self) -> MCPServerSettings:
        return MCPServerSettings(
            server_name=self.tool_server_name,
            host=self.tool_server_host,
            port=self.tool_server_port,
            cors_origins=list(self.cors_origins),
        )

    def agent_settings(self) -> AgentSettings:
        return AgentSettings(
            system_directive=self.system_directive,
            tool_name=self.tool_name,
            tool_argument=self.tool_argument,
            finalization=self.finalization,
            tool_timeout=self.tool_timeout,
        )

    def ollama_settings(self) -> OllamaSettings:
        return OllamaSettings(
            base_url=self.ollama_base_url,
            model=self.ollama_model,
            temperature=self.ollama_temperature,
            timeout=self.ollama_timeout,
        )
