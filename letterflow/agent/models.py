"""Agent session state and settings."""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Union
from uuid import uuid4

from pydantic import Field

from letterflow.core.errors import ErrorContext, StateError, StateErrorContext
from letterflow.core.models import MutableStrictBaseModel, StrictBaseModel
from letterflow.providers.mcp.base import ToolCallRequest, ToolError, ToolSuccess

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_DIRECTIVE = (
    "Count the number of letter 'e's in the provided word.\n"
    "Limit your response just the number."
)


class AgentState(str, Enum):
    """Lifecycle of one agent invocation."""
    START = "start"
    TOOL_CALL_ISSUED = "tool_call_issued"
    RESULT_RECEIVED = "result_received"
    FINALIZED = "finalized"
    FAILED = "failed"


class FinalizationMode(str, Enum):
    """How the tool result becomes the final answer."""
    VERBATIM = "verbatim"  # tool content is the answer
    REWORD = "reword"      # completion provider rewrites the tool content


_TRANSITIONS: Dict[AgentState, FrozenSet[AgentState]] = {
    AgentState.START: frozenset({AgentState.TOOL_CALL_ISSUED, AgentState.FAILED}),
    AgentState.TOOL_CALL_ISSUED: frozenset({AgentState.RESULT_RECEIVED, AgentState.FAILED}),
    AgentState.RESULT_RECEIVED: frozenset({AgentState.FINALIZED, AgentState.FAILED}),
    AgentState.FINALIZED: frozenset(),
    AgentState.FAILED: frozenset(),
}


class AgentSettings(StrictBaseModel):
    """Settings for the agent orchestrator."""

    system_directive: str = Field(default=DEFAULT_SYSTEM_DIRECTIVE, min_length=1, description="Fixed agent directive")
    tool_name: str = Field(default="countEs", min_length=1, description="Tool the agent delegates to")
    tool_argument: str = Field(default="word", min_length=1, description="Tool argument receiving the user input")
    finalization: FinalizationMode = Field(default=FinalizationMode.VERBATIM, description="Finalization policy")
    tool_timeout: float = Field(default=30.0, gt=0, description="Seconds to wait for a tool outcome")


class AgentSession(MutableStrictBaseModel):
    """State of one invocation. Never shared and never persisted."""

    session_id: str = Field(default_factory=lambda: uuid4().hex)
    system_directive: str
    user_input: str
    pending_tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    outcome: Optional[Union[ToolSuccess, ToolError]] = None
    final_answer: Optional[str] = None
    state: AgentState = AgentState.START
    failure_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def _transition(self, target: AgentState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise StateError(
                message=f"Illegal transition {self.state.value} -> {target.value}",
                context=ErrorContext.create(
                    flow_name="agent",
                    error_type="IllegalTransition",
                    error_location=f"{self.__class__.__name__}._transition",
                    component=self.session_id,
                    operation=target.value,
                ),
                state_context=StateErrorContext(
                    state_name=self.__class__.__name__,
                    state_type=AgentState.__name__,
                    transition_from=self.state.value,
                    transition_to=target.value,
                ),
            )
        logger.debug(f"Session {self.session_id}: {self.state.value} -> {target.value}")
        self.state = target

    def issue_tool_call(self, request: ToolCallRequest) -> None:
        self._transition(AgentState.TOOL_CALL_ISSUED)
        self.pending_tool_calls.append(request)

    def record_outcome(self, outcome: Union[ToolSuccess, ToolError]) -> None:
        self._transition(AgentState.RESULT_RECEIVED)
        self.pending_tool_calls.pop(0)
        self.outcome = outcome

    def finalize(self, answer: str) -> None:
        self._transition(AgentState.FINALIZED)
        self.final_answer = answer

    def fail(self, reason: str) -> None:
        self._transition(AgentState.FAILED)
        self.failure_reason = reason
