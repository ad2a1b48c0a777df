"""FastAPI application entry point."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from letterflow import __version__
from letterflow.agent.errors import ToolCallFailedError, ToolUnavailableError
from letterflow.agent.orchestrator import AgentOrchestrator
from letterflow.bootstrap import build_orchestrator, close_orchestrator
from letterflow.config.settings import AppSettings
from letterflow.core.errors import ProviderError
from letterflow.providers.mcp.base import MCPError, MCPTimeoutError, ToolErrorKind
from letterflow.server.api import count, health

logger = logging.getLogger(__name__)


async def _tool_call_failed(request: Request, exc: Exception) -> PlainTextResponse:
    assert isinstance(exc, ToolCallFailedError)
    if exc.kind == ToolErrorKind.VALIDATION:
        return PlainTextResponse(exc.outcome.error, status_code=status.HTTP_400_BAD_REQUEST)
    return PlainTextResponse(exc.outcome.error, status_code=status.HTTP_502_BAD_GATEWAY)


async def _tool_timeout(request: Request, exc: Exception) -> PlainTextResponse:
    logger.error("Tool call timed out: %s", exc)
    return PlainTextResponse("Tool call timed out", status_code=status.HTTP_504_GATEWAY_TIMEOUT)


async def _tool_unreachable(request: Request, exc: Exception) -> PlainTextResponse:
    logger.error("Tool server unavailable: %s", exc)
    return PlainTextResponse("Tool server unavailable", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


async def _tool_unavailable(request: Request, exc: Exception) -> PlainTextResponse:
    assert isinstance(exc, ToolUnavailableError)
    logger.error("%s", exc.message)
    return PlainTextResponse(exc.message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


def create_app(settings: AppSettings | None = None, orchestrator: AgentOrchestrator | None = None) -> FastAPI:
    """Build the façade.

    Args:
        settings: Application settings; read from the environment when omitted
        orchestrator: Prebuilt orchestrator. When given, the app does not own
            it and will not shut it down.
    """
    settings = settings or AppSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info("Starting letterflow server...")
        owned = orchestrator is None
        if owned:
            app.state.orchestrator = build_orchestrator(settings)
        try:
            yield
        finally:
            logger.info("Shutting down letterflow server...")
            if owned:
                await close_orchestrator(app.state.orchestrator)

    app = FastAPI(
        title="letterflow",
        description="Letter counting agent backed by an MCP tool server",
        version=__version__,
        lifespan=lifespan,
    )
    if orchestrator is not None:
        app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ToolCallFailedError, _tool_call_failed)
    app.add_exception_handler(ToolUnavailableError, _tool_unavailable)
    app.add_exception_handler(MCPTimeoutError, _tool_timeout)
    app.add_exception_handler(MCPError, _tool_unreachable)
    app.add_exception_handler(ProviderError, _tool_unreachable)

    app.include_router(health.router, tags=["health"])
    app.include_router(count.router, tags=["count"])

    return app


app = create_app()
