"""
Shifted Weibull distribution.

The Weibull distribution has PDF:

.. math::
    p(x|k, \\lambda, s) = \\frac{k}{\\lambda}
    \\left(\\frac{x - s}{\\lambda}\\right)^{k-1}
    \\exp\\left(-\\left(\\frac{x - s}{\\lambda}\\right)^k\\right)

for :math:`x \\geq s`, where :math:`k > 0` is the shape, :math:`\\lambda > 0`
the scale and :math:`s` the value shift (lower bound of the support).
:meth:`compute_p_from_zero` integrates from :math:`s`.

Estimation (method of moments on :math:`y = x - s`):

.. math::
    \\frac{\\text{Var}[Y]}{E[Y]^2} =
    \\frac{\\Gamma(1 + 2/k)}{\\Gamma(1 + 1/k)^2} - 1,
    \\qquad \\lambda = \\frac{E[Y]}{\\Gamma(1 + 1/k)}

The left-hand side is decreasing in :math:`k`; the root is bracketed in
``[SHAPE_MIN, SHAPE_MAX]``.

Note: scipy's ``weibull_min(c=k, loc=s, scale=lambda)`` is the same model.
"""

from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.optimize import brentq
from scipy.special import gammaln

from pcstats.base import Distribution
from pcstats.base.distribution import _as_output
from pcstats.params import WeibullParams

SHAPE_MIN = 0.05
SHAPE_MAX = 1000.0


def _squared_cv(k):
    """Squared coefficient of variation of a Weibull with shape k."""
    return np.expm1(gammaln(1.0 + 2.0 / k) - 2.0 * gammaln(1.0 + 1.0 / k))


class Weibull(Distribution):
    """
    Weibull distribution with a value shift.

    Parameters
    ----------
    value_shift : float, optional
        Fixed lower bound of the support. If None, the minimum of each fitted
        population is used.

    Examples
    --------
    >>> dist = Weibull()
    >>> dist.compute_parameters(values)
    True
    >>> dist.classical_params.value_shift == values.min()
    True

    >>> dist = Weibull.from_classical_params(shape=2.0, scale=1.0, value_shift=0.0)
    """

    name = "Weibull"

    def __init__(self, value_shift: Optional[float] = None):
        super().__init__()
        self._fixed_shift = None if value_shift is None else float(value_shift)
        self._k = None
        self._lambda = None
        self._shift = None

    def _reset_parameters(self) -> None:
        self._k = None
        self._lambda = None
        self._shift = None

    def _set_from_classical(self, *, shape, scale, value_shift=0.0) -> None:
        if not (np.isfinite(shape) and shape > 0):
            raise ValueError(f"Shape must be positive, got {shape}")
        if not (np.isfinite(scale) and scale > 0):
            raise ValueError(f"Scale must be positive, got {scale}")
        if not np.isfinite(value_shift):
            raise ValueError(f"Value shift must be finite, got {value_shift}")
        self._k = float(shape)
        self._lambda = float(scale)
        self._shift = float(value_shift)

    def _estimate(self, values: NDArray) -> bool:
        shift = float(values.min()) if self._fixed_shift is None else self._fixed_shift
        y = values - shift
        if np.any(y < 0):
            return False

        m = float(np.mean(y))
        v = float(np.mean((y - m) ** 2))
        if not (m > 0 and v > 0):
            return False

        cv2 = v / m ** 2
        f_lo = _squared_cv(SHAPE_MIN) - cv2
        f_hi = _squared_cv(SHAPE_MAX) - cv2
        if not (np.isfinite(f_lo) and np.isfinite(f_hi)) or f_lo < 0 or f_hi > 0:
            return False

        k = brentq(lambda s: _squared_cv(s) - cv2, SHAPE_MIN, SHAPE_MAX, xtol=1e-12)
        scale = m / np.exp(gammaln(1.0 + 1.0 / k))
        if not (np.isfinite(k) and np.isfinite(scale) and scale > 0):
            return False

        self._k = float(k)
        self._lambda = float(scale)
        self._shift = shift
        return True

    def _compute_classical_params(self):
        return WeibullParams(shape=self._k, scale=self._lambda, value_shift=self._shift)

    @property
    def support_lower(self) -> float:
        self._check_fitted()
        return self._shift

    def pdf(self, x: ArrayLike):
        self._check_fitted()
        x = np.asarray(x, dtype=float)
        k, lam = self._k, self._lambda
        z = np.clip((x - self._shift) / lam, 0.0, None)
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            result = (k / lam) * z ** (k - 1) * np.exp(-z ** k)
        result = np.where(x >= self._shift, result, 0.0)
        return _as_output(x, result)

    def cdf(self, x: ArrayLike):
        self._check_fitted()
        x = np.asarray(x, dtype=float)
        z = np.clip((x - self._shift) / self._lambda, 0.0, None)
        result = -np.expm1(-z ** self._k)
        return _as_output(x, result)

    def ppf(self, q: ArrayLike):
        self._check_fitted()
        q = np.asarray(q, dtype=float)
        with np.errstate(divide='ignore'):
            result = self._shift + self._lambda * (-np.log1p(-q)) ** (1.0 / self._k)
        return _as_output(q, result)

    def mean(self) -> float:
        self._check_fitted()
        return self._shift + self._lambda * float(np.exp(gammaln(1.0 + 1.0 / self._k)))

    def var(self) -> float:
        self._check_fitted()
        g1 = gammaln(1.0 + 1.0 / self._k)
        g2 = gammaln(1.0 + 2.0 / self._k)
        return self._lambda ** 2 * float(np.exp(g2) - np.exp(2 * g1))

    def mode(self) -> float:
        """Mode of the distribution (the value shift when shape <= 1)."""
        self._check_fitted()
        if self._k <= 1:
            return self._shift
        return self._shift + self._lambda * ((self._k - 1) / self._k) ** (1.0 / self._k)
