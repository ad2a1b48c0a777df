"""Routing pipelines and the route table."""

from .decorators import pipeline
from .registry import RouteRegistry
from .routing import GENERIC_EXECUTION_ERROR, LoggingHook, PipelineHook, RoutingPipeline

__all__ = [
    "GENERIC_EXECUTION_ERROR",
    "LoggingHook",
    "PipelineHook",
    "RouteRegistry",
    "RoutingPipeline",
    "pipeline",
]
