#!/usr/bin/env python3
"""Run the MCP tool server exposing the letter counting route."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

from letterflow.apps import configure_logging
from letterflow.bootstrap import build_tool_server
from letterflow.config.settings import AppSettings

logger = logging.getLogger(__name__)


async def serve(settings: AppSettings) -> None:
    """Start the tool server and block until SIGINT or SIGTERM."""
    server = build_tool_server(settings)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await server.initialize()
    info = server.get_server_info()
    logger.info(f"Serving tools {info['available_tools']} and routes {info['routes']}")
    try:
        await stop.wait()
    finally:
        await server.shutdown()


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = AppSettings()
    parser = argparse.ArgumentParser(description="Start the letterflow MCP tool server")
    parser.add_argument("--host", default=settings.tool_server_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.tool_server_port, help="Port to bind to")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["critical", "error", "warning", "info", "debug"],
        help="Logging level",
    )
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    settings = settings.model_copy(update={"tool_server_host": args.host, "tool_server_port": args.port})
    asyncio.run(serve(settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
