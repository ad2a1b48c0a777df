"""Explicit construction of the route table, tool server and agent.

Everything is built from an ``AppSettings`` instance and passed by
reference; nothing is looked up from a global registry.
"""

import logging
from typing import Optional

from letterflow.agent.models import FinalizationMode
from letterflow.agent.orchestrator import AgentOrchestrator
from letterflow.capabilities.letter_counter import LetterCounter
from letterflow.config.settings import AppSettings
from letterflow.flows.registry import RouteRegistry
from letterflow.flows.routing import RoutingPipeline
from letterflow.providers.core.base import Provider
from letterflow.providers.llm.ollama.provider import OllamaProvider
from letterflow.providers.mcp.base import ArgumentType, ToolArgument, ToolDescriptor
from letterflow.providers.mcp.client.provider import MCPClientProvider
from letterflow.providers.mcp.server.provider import MCPServerProvider

logger = logging.getLogger(__name__)

COUNT_ES_ROUTE = "countEs"

COUNT_ES_TOOL = ToolDescriptor(
    name="countEs",
    description="Count occurrences of letter 'e' in a word",
    arguments={
        "word": ToolArgument(type=ArgumentType.STRING, description="The word to inspect"),
    },
)


def build_routes() -> RouteRegistry:
    """Build the frozen route table."""
    routes = RouteRegistry()
    routes.register(RoutingPipeline(COUNT_ES_ROUTE, LetterCounter("e")))
    routes.freeze()
    return routes


def build_tool_server(settings: AppSettings, routes: Optional[RouteRegistry] = None) -> MCPServerProvider:
    """Build the tool server with every route exposed as a tool."""
    server = MCPServerProvider(
        name="tool-server",
        settings=settings.mcp_server_settings(),
        routes=routes if routes is not None else build_routes(),
    )
    server.register_route_tool(COUNT_ES_TOOL, route=COUNT_ES_ROUTE, argument="word")
    return server


def build_tool_client(settings: AppSettings) -> MCPClientProvider:
    return MCPClientProvider(name="tool-client", settings=settings.mcp_client_settings())


def build_completion(settings: AppSettings) -> Optional[OllamaProvider]:
    """Completion provider, only when the agent rewords tool results."""
    if settings.finalization != FinalizationMode.REWORD:
        return None
    return OllamaProvider(name="ollama", settings=settings.ollama_settings())


def build_orchestrator(settings: AppSettings) -> AgentOrchestrator:
    """Build the agent with its tool client and optional completion provider.

    No connection is opened here; the client connects on first use.
    """
    orchestrator = AgentOrchestrator(
        tool_client=build_tool_client(settings),
        settings=settings.agent_settings(),
        completion=build_completion(settings),
    )
    logger.info(
        f"Agent wired to {settings.mcp_server_url} over {settings.mcp_transport.value} "
        f"({settings.finalization.value} finalization)"
    )
    return orchestrator


async def close_orchestrator(orchestrator: AgentOrchestrator) -> None:
    """Shut down the providers an orchestrator owns."""
    for collaborator in (orchestrator.tool_client, orchestrator.completion):
        if isinstance(collaborator, Provider):
            await collaborator.shutdown()
