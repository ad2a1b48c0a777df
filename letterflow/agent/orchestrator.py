"""Agent orchestrator.

Drives one tool call per invocation: verify the tool is advertised, call
it with the user input, then turn the outcome into the final answer.
"""

import logging
from typing import Dict, Optional, Protocol

from letterflow.core.errors import ConfigurationError, ConfigurationErrorContext, ErrorContext
from letterflow.providers.mcp.base import ToolCallOutcome, ToolCallRequest, ToolDescriptor, ToolError

from .errors import ToolCallFailedError, ToolUnavailableError
from .models import AgentSession, AgentSettings, FinalizationMode

logger = logging.getLogger(__name__)


class ToolClient(Protocol):
    """What the orchestrator needs from a tool connection."""

    async def list_tools(self) -> Dict[str, ToolDescriptor]:
        ...

    async def call_tool(self, request: ToolCallRequest, timeout: Optional[float] = None) -> ToolCallOutcome:
        ...


class CompletionProvider(Protocol):
    """Text-completion collaborator used to reword tool results."""

    async def complete(self, prompt: str, system_directive: Optional[str] = None) -> str:
        ...


class AgentOrchestrator:
    """Single tool-call agent.

    No retries happen here; a transport failure ends the invocation and
    propagates to the caller.
    """

    def __init__(
        self,
        tool_client: ToolClient,
        settings: Optional[AgentSettings] = None,
        completion: Optional[CompletionProvider] = None,
    ):
        self.tool_client = tool_client
        self.settings = settings or AgentSettings()
        self.completion = completion

        if self.settings.finalization == FinalizationMode.REWORD and completion is None:
            raise ConfigurationError(
                message="Reword finalization requires a completion provider",
                context=self._context("ConfigurationError", "__init__"),
                config_context=ConfigurationErrorContext(
                    config_key="finalization",
                    config_section="agent",
                    expected_type="verbatim without completion provider",
                    actual_value=self.settings.finalization.value,
                ),
            )

    def _context(self, error_type: str, operation: str) -> ErrorContext:
        return ErrorContext.create(
            flow_name=self.settings.tool_name,
            error_type=error_type,
            error_location=f"{self.__class__.__name__}.{operation}",
            component="agent_orchestrator",
            operation=operation,
        )

    async def invoke(self, user_input: str, system_directive: Optional[str] = None) -> AgentSession:
        """Run one invocation and return its finalized session.

        Raises:
            ToolUnavailableError: If the server does not advertise the tool
            ToolCallFailedError: If the tool returned an error outcome
            MCPConnectionError: If the transport fails (not retried)
        """
        session = AgentSession(
            system_directive=system_directive or self.settings.system_directive,
            user_input=user_input,
        )

        try:
            await self._check_tool_available()

            request = ToolCallRequest(
                tool=self.settings.tool_name,
                arguments={self.settings.tool_argument: user_input.strip()},
            )
            session.issue_tool_call(request)
            outcome = await self.tool_client.call_tool(request, timeout=self.settings.tool_timeout)
            session.record_outcome(outcome)

            if isinstance(outcome, ToolError):
                raise ToolCallFailedError(outcome, self._context("ToolCallFailed", "invoke"))

            session.finalize(await self._finalize(session, outcome.text))
        except Exception as e:
            if not session.is_terminal:
                session.fail(str(e))
            logger.warning(f"Agent session {session.session_id} failed: {e}")
            raise

        logger.debug(f"Agent session {session.session_id} finalized: {session.final_answer!r}")
        return session

    async def answer(self, user_input: str) -> str:
        """Final answer for ``user_input`` under the configured directive."""
        session = await self.invoke(user_input)
        return session.final_answer or ""

    async def _check_tool_available(self) -> None:
        tools = await self.tool_client.list_tools()
        if self.settings.tool_name not in tools:
            raise ToolUnavailableError(self.settings.tool_name, self._context("ToolUnavailable", "invoke"))

    async def _finalize(self, session: AgentSession, content: str) -> str:
        if self.settings.finalization == FinalizationMode.VERBATIM:
            return content

        assert self.completion is not None
        prompt = (
            f"{session.user_input}\n\n"
            f"Result of tool '{self.settings.tool_name}': {content}"
        )
        return await self.completion.complete(prompt, system_directive=session.system_directive)
