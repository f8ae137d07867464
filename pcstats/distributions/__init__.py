"""Concrete scalar distributions."""

from .normal import Normal
from .weibull import Weibull
from .gamma import Gamma

__all__ = ['Normal', 'Weibull', 'Gamma']
