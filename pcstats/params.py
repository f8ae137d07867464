"""
Frozen dataclass parameter containers for all distributions.

Each distribution's fitted parameters are represented as a frozen dataclass
with ``slots=True`` for memory efficiency. This provides:

- **IDE autocompletion**: ``params.mu`` instead of ``params['mu']``
- **Immutability**: A fitted parameter set cannot be mutated behind the
  distribution's back; re-fitting builds a new container
- **Dict conversion**: ``dataclasses.asdict(params)`` when needed

Examples
--------
>>> from pcstats.params import NormalParams
>>> p = NormalParams(mu=0.0, sigma2=4.0)
>>> p.sigma
2.0
>>> p.mu = 3.0  # Raises FrozenInstanceError

>>> import dataclasses
>>> dataclasses.asdict(p)
{'mu': 0.0, 'sigma2': 4.0}
"""

import math
from dataclasses import dataclass, fields


class _ParamsBase:
    """Read-only mapping view over the fields of a parameter dataclass.

    Only dataclass fields are keys; derived properties such as
    :attr:`NormalParams.sigma` stay attribute-only.
    """

    __slots__ = ()

    def keys(self) -> tuple:
        return tuple(f.name for f in fields(self))

    def __getitem__(self, key: str):
        if key not in self.keys():
            raise KeyError(key)
        return getattr(self, key)

    def __contains__(self, key) -> bool:
        return key in self.keys()

    def values(self) -> tuple:
        return tuple(getattr(self, k) for k in self.keys())

    def items(self) -> tuple:
        return tuple(zip(self.keys(), self.values()))


@dataclass(frozen=True, slots=True)
class NormalParams(_ParamsBase):
    """
    Parameters of the Normal (Gauss) distribution.

    Attributes
    ----------
    mu : float
        Mean :math:`\\mu`.
    sigma2 : float
        Variance :math:`\\sigma^2 > 0`.
    """
    mu: float
    sigma2: float

    @property
    def sigma(self) -> float:
        """Standard deviation :math:`\\sigma`."""
        return math.sqrt(self.sigma2)


@dataclass(frozen=True, slots=True)
class WeibullParams(_ParamsBase):
    """
    Parameters of the shifted Weibull distribution.

    Attributes
    ----------
    shape : float
        Shape parameter :math:`k > 0`.
    scale : float
        Scale parameter :math:`\\lambda > 0`.
    value_shift : float
        Lower bound of the support; the distribution models ``x - value_shift``.
    """
    shape: float
    scale: float
    value_shift: float


@dataclass(frozen=True, slots=True)
class GammaParams(_ParamsBase):
    """
    Parameters of the Gamma distribution.

    Attributes
    ----------
    shape : float
        Shape parameter :math:`\\alpha > 0`.
    rate : float
        Rate parameter :math:`\\beta > 0`.
    """
    shape: float
    rate: float
