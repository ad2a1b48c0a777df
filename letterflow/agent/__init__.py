"""Single tool-call agent."""

from .errors import ToolCallFailedError, ToolUnavailableError
from .models import (
    DEFAULT_SYSTEM_DIRECTIVE,
    AgentSession,
    AgentSettings,
    AgentState,
    FinalizationMode,
)
from .orchestrator import AgentOrchestrator, CompletionProvider, ToolClient

__all__ = [
    "DEFAULT_SYSTEM_DIRECTIVE",
    "AgentOrchestrator",
    "AgentSession",
    "AgentSettings",
    "AgentState",
    "CompletionProvider",
    "FinalizationMode",
    "ToolCallFailedError",
    "ToolClient",
    "ToolUnavailableError",
]
