"""Health check endpoints."""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from letterflow.core.errors import ProviderError
from letterflow.providers.mcp.base import MCPError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get("/ready", response_model=None)
async def readiness_check(request: Request) -> dict[str, str] | JSONResponse:
    """Readiness check endpoint.

    Ready once the tool server is reachable and advertises the agent's tool.
    Connects the tool client if it is not connected yet.
    """
    orchestrator = request.app.state.orchestrator
    try:
        tools = await orchestrator.tool_client.list_tools()
    except (MCPError, ProviderError) as exc:
        logger.warning("Readiness check failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "detail": str(exc)},
        )

    tool_name = orchestrator.settings.tool_name
    if tool_name not in tools:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "detail": f"Tool '{tool_name}' is not advertised"},
        )
    return {"status": "ready"}
