#!/usr/bin/env python3
"""
letterflow façade runner

Start the FastAPI façade with uvicorn.

Usage:
    letterflow-server                      # Start with settings from the environment
    letterflow-server --port 8081          # Start on custom port
    letterflow-server --transport http     # Talk to the tool server over plain HTTP
"""

import argparse
import sys
from typing import Optional, Sequence

import uvicorn

from letterflow.agent.models import FinalizationMode
from letterflow.apps import configure_logging
from letterflow.config.settings import AppSettings
from letterflow.providers.mcp.base import MCPTransport
from letterflow.server.main import create_app


def build_parser(settings: AppSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Start the letterflow HTTP façade",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default=settings.host, help=f"Host to bind to (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port to bind to (default: {settings.port})")
    parser.add_argument(
        "--tool-server-url",
        default=settings.mcp_server_url,
        help=f"MCP endpoint of the tool server (default: {settings.mcp_server_url})",
    )
    parser.add_argument(
        "--transport",
        default=settings.mcp_transport.value,
        choices=[t.value for t in MCPTransport],
        help="Transport to the tool server",
    )
    parser.add_argument(
        "--finalization",
        default=settings.finalization.value,
        choices=[m.value for m in FinalizationMode],
        help="How tool results become answers",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["critical", "error", "warning", "info", "debug"],
        help="Logging level",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the façade with the specified configuration."""
    settings = AppSettings()
    args = build_parser(settings).parse_args(argv)
    configure_logging(args.log_level)

    settings = settings.model_copy(update={
        "host": args.host,
        "port": args.port,
        "mcp_server_url": args.tool_server_url,
        "mcp_transport": MCPTransport(args.transport),
        "finalization": FinalizationMode(args.finalization),
    })

    print(f"Host: {settings.host}")
    print(f"Port: {settings.port}")
    print(f"Tool server: {settings.mcp_server_url} ({settings.mcp_transport.value})")
    print()

    try:
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=args.log_level)
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
