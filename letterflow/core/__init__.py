"""Core foundational models and error taxonomy."""

from .models import (
    MutableStrictBaseModel,
    StrictBaseModel,
)

__all__ = [
    "StrictBaseModel",
    "MutableStrictBaseModel",
]
