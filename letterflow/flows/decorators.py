"""Decorators for routing pipelines."""

import datetime
import functools
import logging
from typing import Any, Callable, TypeVar

F = TypeVar('F', bound=Callable[..., Any])

logger = logging.getLogger(__name__)


def pipeline(method: F) -> F:
    """Mark a method as a pipeline entry point and log its execution time."""

    @functools.wraps(method)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        start_time = datetime.datetime.now()
        try:
            return method(*args, **kwargs)
        finally:
            execution_time = datetime.datetime.now() - start_time
            owner = args[0] if args else None
            label = getattr(owner, "name", owner.__class__.__name__ if owner is not None else "?")
            logger.debug(f"Pipeline execution: {label}.{method.__name__} ({execution_time.total_seconds():.3f}s)")

    wrapper.__pipeline__ = True  # type: ignore[attr-defined]
    return wrapper  # type: ignore[return-value]
