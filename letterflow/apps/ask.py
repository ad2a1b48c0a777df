#!/usr/bin/env python3
"""Ask the agent once from the command line."""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel

from letterflow.agent.errors import ToolCallFailedError, ToolUnavailableError
from letterflow.apps import configure_logging
from letterflow.bootstrap import build_orchestrator, close_orchestrator
from letterflow.config.settings import AppSettings
from letterflow.core.errors import ProviderError
from letterflow.providers.mcp.base import MCPError, MCPTransport

console = Console()


async def ask(settings: AppSettings, word: str) -> int:
    orchestrator = build_orchestrator(settings)
    try:
        session = await orchestrator.invoke(word)
    except ToolCallFailedError as e:
        console.print(f"[red]Tool error ({e.kind.value}):[/red] {e.outcome.error}")
        return 1
    except (ToolUnavailableError, MCPError, ProviderError) as e:
        console.print(f"[red]Tool server unavailable:[/red] {e}")
        return 2
    finally:
        await close_orchestrator(orchestrator)

    console.print(Panel(
        session.final_answer or "",
        title=f"[bold]{word}[/bold]",
        subtitle=f"session {session.session_id[:8]}",
        expand=False,
    ))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = AppSettings()
    parser = argparse.ArgumentParser(description="Count the 'e's in a word through the agent")
    parser.add_argument("word", help="Word to inspect")
    parser.add_argument("--tool-server-url", default=settings.mcp_server_url, help="MCP endpoint of the tool server")
    parser.add_argument(
        "--transport",
        default=settings.mcp_transport.value,
        choices=[t.value for t in MCPTransport],
        help="Transport to the tool server",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["critical", "error", "warning", "info", "debug"],
        help="Logging level",
    )
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    settings = settings.model_copy(update={
        "mcp_server_url": args.tool_server_url,
        "mcp_transport": MCPTransport(args.transport),
    })
    return asyncio.run(ask(settings, args.word))


if __name__ == "__main__":
    sys.exit(main())
