"""Base class of the fitted scalar distributions."""

from .distribution import Distribution

__all__ = [
    "Distribution",
]
