"""Agent failure types."""

from typing import Optional

from letterflow.core.errors import BaseError, ErrorContext
from letterflow.providers.mcp.base import ToolError, ToolErrorKind


class ToolUnavailableError(BaseError):
    """The tool server does not advertise the configured tool."""

    def __init__(self, tool_name: str, context: ErrorContext, cause: Optional[Exception] = None):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' is not available", context, cause)


class ToolCallFailedError(BaseError):
    """The tool call produced an error outcome.

    The outcome is kept so callers can map it to a response; its text is
    never turned into an answer.
    """

    def __init__(self, outcome: ToolError, context: ErrorContext):
        self.outcome = outcome
        super().__init__(f"Tool call failed: {outcome.error}", context)

    @property
    def kind(self) -> ToolErrorKind:
        return self.outcome.kind
