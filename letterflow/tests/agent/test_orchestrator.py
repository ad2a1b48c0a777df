"""Tests for the agent orchestrator."""

from unittest.mock import AsyncMock, Mock

import pytest

from letterflow.agent import AgentOrchestrator, AgentSettings, AgentState, FinalizationMode
from letterflow.agent.errors import ToolCallFailedError, ToolUnavailableError
from letterflow.bootstrap import COUNT_ES_TOOL
from letterflow.core.errors import ConfigurationError
from letterflow.providers.mcp.base import (
    MCPConnectionError,
    MCPTimeoutError,
    ToolCallRequest,
    ToolError,
    ToolErrorKind,
    ToolSuccess,
)


def make_tool_client(outcome=None, tools=None) -> Mock:
    client = Mock()
    client.list_tools = AsyncMock(return_value={"countEs": COUNT_ES_TOOL} if tools is None else tools)
    client.call_tool = AsyncMock(return_value=outcome or ToolSuccess(content="2"))
    return client


class TestAgentOrchestrator:
    """Test AgentOrchestrator class."""

    @pytest.mark.asyncio
    async def test_verbatim_answer(self):
        """The tool result is returned unchanged."""
        client = make_tool_client()
        orchestrator = AgentOrchestrator(client)

        session = await orchestrator.invoke("splendiferous")

        assert session.final_answer == "2"
        assert session.state == AgentState.FINALIZED
        client.call_tool.assert_awaited_once_with(
            ToolCallRequest(tool="countEs", arguments={"word": "splendiferous"}), timeout=30.0
        )

    @pytest.mark.asyncio
    async def test_input_is_trimmed(self):
        """Surrounding whitespace is stripped before the tool call."""
        client = make_tool_client()

        await AgentOrchestrator(client).answer("  splendiferous\n")

        request = client.call_tool.await_args.args[0]
        assert request.arguments == {"word": "splendiferous"}

    @pytest.mark.asyncio
    async def test_configured_tool_and_argument(self):
        """The configured tool and argument names are used."""
        client = make_tool_client(tools={"countAs": COUNT_ES_TOOL})
        settings = AgentSettings(tool_name="countAs", tool_argument="text", tool_timeout=2.5)

        await AgentOrchestrator(client, settings=settings).answer("banana")

        request = client.call_tool.await_args.args[0]
        assert request == ToolCallRequest(tool="countAs", arguments={"text": "banana"})
        assert client.call_tool.await_args.kwargs["timeout"] == 2.5

    @pytest.mark.asyncio
    async def test_reword_uses_completion(self):
        """Reword mode hands the tool result to the completion provider."""
        client = make_tool_client()
        completion = Mock()
        completion.complete = AsyncMock(return_value="There are 2 e's.")
        settings = AgentSettings(finalization=FinalizationMode.REWORD)

        answer = await AgentOrchestrator(client, settings=settings, completion=completion).answer("splendiferous")

        assert answer == "There are 2 e's."
        prompt = completion.complete.await_args.args[0]
        assert "splendiferous" in prompt
        assert "Result of tool 'countEs': 2" in prompt
        assert completion.complete.await_args.kwargs["system_directive"] == settings.system_directive

    @pytest.mark.asyncio
    async def test_custom_directive_reaches_completion(self):
        """A custom system directive is passed to the completion provider."""
        completion = Mock()
        completion.complete = AsyncMock(return_value="2")
        settings = AgentSettings(finalization=FinalizationMode.REWORD)
        orchestrator = AgentOrchestrator(make_tool_client(), settings=settings, completion=completion)

        session = await orchestrator.invoke("tree", system_directive="Answer in French.")

        assert session.system_directive == "Answer in French."
        assert completion.complete.await_args.kwargs["system_directive"] == "Answer in French."

    def test_reword_requires_completion(self):
        """Reword mode without a completion provider is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            AgentOrchestrator(make_tool_client(), settings=AgentSettings(finalization=FinalizationMode.REWORD))

        assert exc_info.value.config_context.config_key == "finalization"

    @pytest.mark.asyncio
    async def test_error_outcome_short_circuits(self):
        """An error outcome is raised without calling the completion provider."""
        error = ToolError(error="Invalid arguments for tool 'countEs': word: bad", kind=ToolErrorKind.VALIDATION)
        completion = Mock()
        completion.complete = AsyncMock()
        settings = AgentSettings(finalization=FinalizationMode.REWORD)
        orchestrator = AgentOrchestrator(make_tool_client(error), settings=settings, completion=completion)

        with pytest.raises(ToolCallFailedError) as exc_info:
            await orchestrator.invoke("splendiferous")

        assert exc_info.value.outcome == error
        assert exc_info.value.kind == ToolErrorKind.VALIDATION
        completion.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unavailable_tool(self):
        """A tool the server does not advertise is reported as unavailable."""
        client = make_tool_client(tools={})

        with pytest.raises(ToolUnavailableError) as exc_info:
            await AgentOrchestrator(client).invoke("splendiferous")

        assert exc_info.value.tool_name == "countEs"
        client.call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [MCPConnectionError("refused"), MCPTimeoutError("slow")])
    async def test_transport_failure_not_retried(self, failure):
        """Transport failures reach the caller after a single attempt."""
        client = make_tool_client()
        client.call_tool = AsyncMock(side_effect=failure)

        with pytest.raises(type(failure)):
            await AgentOrchestrator(client).invoke("splendiferous")

        client.call_tool.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_repeated_invocations_identical(self):
        """The same input always produces the same answer."""
        orchestrator = AgentOrchestrator(make_tool_client())

        answers = {await orchestrator.answer("splendiferous") for _ in range(3)}

        assert answers == {"2"}
