"""Explicit route table."""

import logging
from typing import Dict, List

from letterflow.flows.routing import RoutingPipeline

logger = logging.getLogger(__name__)


class RouteRegistry:
    """Route name to pipeline mapping.

    Filled once at startup and then frozen; lookups after that are
    read-only.
    """

    def __init__(self) -> None:
        self._routes: Dict[str, RoutingPipeline] = {}
        self._frozen = False

    def register(self, pipeline: RoutingPipeline) -> None:
        """Register a pipeline under its own name."""
        if self._frozen:
            raise RuntimeError(f"Cannot register route '{pipeline.name}': registry is frozen")
        if pipeline.name in self._routes:
            raise ValueError(f"Route '{pipeline.name}' is already registered")
        self._routes[pipeline.name] = pipeline
        logger.debug(f"Registered route: {pipeline.name}")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> RoutingPipeline:
        """Get a pipeline by route name.

        Raises:
            KeyError: If no route has that name
        """
        if name not in self._routes:
            raise KeyError(f"Route '{name}' not found")
        return self._routes[name]

    def contains(self, name: str) -> bool:
        return name in self._routes

    def list(self) -> List[str]:
        return sorted(self._routes)

    def __len__(self) -> int:
        return len(self._routes)
