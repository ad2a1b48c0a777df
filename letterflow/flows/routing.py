"""Routing pipeline: named path from a tool call to a capability executor.

A pipeline runs pre hooks, invokes its executor inside fault containment
and runs post hooks. Whatever the executor does, ``handle`` returns one
``ToolCallOutcome`` and never raises.
"""

import logging
from typing import Any, Callable, List, Optional, Protocol, Sequence

from letterflow.core.errors import ErrorContext, ExecutionError, LoggingHandler
from letterflow.flows.decorators import pipeline
from letterflow.providers.mcp.base import ToolCallOutcome, ToolError, ToolErrorKind, ToolSuccess

logger = logging.getLogger(__name__)

GENERIC_EXECUTION_ERROR = "Tool execution failed"

Executor = Callable[[Any], Any]


class PipelineHook(Protocol):
    """Observer invoked around each pipeline execution."""

    def before(self, route: str, payload: Any) -> None:
        ...

    def after(self, route: str, outcome: ToolCallOutcome) -> None:
        ...


class LoggingHook:
    """Logs the inbound payload and the produced result."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def before(self, route: str, payload: Any) -> None:
        logger.log(self.level, f"[{route}] word={payload}")

    def after(self, route: str, outcome: ToolCallOutcome) -> None:
        if isinstance(outcome, ToolSuccess):
            logger.log(self.level, f"[{route}] count={outcome.text}")
        else:
            logger.log(self.level, f"[{route}] error={outcome.error}")


class RoutingPipeline:
    """Single-stage route around one capability executor.

    Args:
        name: Route name, used in logs and error context
        executor: Callable taking the payload and returning the result
        hooks: Pre/post hooks; defaults to a single ``LoggingHook``
    """

    def __init__(self, name: str, executor: Executor, hooks: Optional[Sequence[PipelineHook]] = None):
        self.name = name
        self.executor = executor
        self.hooks: List[PipelineHook] = list(hooks) if hooks is not None else [LoggingHook()]
        self._error_handler = LoggingHandler(logger_name=__name__)

    @pipeline
    def handle(self, payload: Any) -> ToolCallOutcome:
        """Run the route for one payload."""
        self._run_hooks("before", payload)

        try:
            outcome: ToolCallOutcome = ToolSuccess(content=self.executor(payload))
        except Exception as e:
            error = ExecutionError(
                message=f"Executor for route '{self.name}' failed: {e}",
                context=ErrorContext.create(
                    flow_name=self.name,
                    error_type=type(e).__name__,
                    error_location=f"{self.__class__.__name__}.handle",
                    component=repr(self.executor),
                    operation="execute",
                ),
                cause=e,
            )
            self._error_handler(error)
            outcome = ToolError(error=GENERIC_EXECUTION_ERROR, kind=ToolErrorKind.EXECUTION)

        self._run_hooks("after", outcome)
        return outcome

    def _run_hooks(self, phase: str, value: Any) -> None:
        for hook in self.hooks:
            try:
                getattr(hook, phase)(self.name, value)
            except Exception as e:
                logger.warning(f"Hook {hook!r} failed in '{phase}' for route '{self.name}': {e}")

    def __repr__(self) -> str:
        return f"RoutingPipeline(name={self.name!r}, executor={self.executor!r})"
