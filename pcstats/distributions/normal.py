"""
Normal (Gauss) distribution.

The Normal distribution has PDF:

.. math::
    p(x|\\mu, \\sigma^2) = \\frac{1}{\\sqrt{2\\pi\\sigma^2}}
    \\exp\\left(-\\frac{(x - \\mu)^2}{2\\sigma^2}\\right)

Its support is the whole real line, so :meth:`compute_p_from_zero` is the
plain CDF :math:`\\Phi((x - \\mu) / \\sigma)`.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.special import ndtr, ndtri

from pcstats.base import Distribution
from pcstats.base.distribution import _as_output
from pcstats.params import NormalParams
from pcstats.sources import as_values


class Normal(Distribution):
    """
    Normal distribution fitted by sample mean and variance.

    Examples
    --------
    >>> from pcstats.sources import from_array
    >>> dist = Normal()
    >>> dist.compute_parameters(from_array(np.array([1.0, 2.0, 3.0])))
    True
    >>> dist.mean()
    2.0

    >>> dist = Normal.from_classical_params(mu=0.0, sigma2=1.0)
    >>> dist.compute_p_from_zero(0.0)
    0.5
    """

    name = "Gauss"

    def __init__(self):
        super().__init__()
        self._mu = None
        self._sigma2 = None

    def _reset_parameters(self) -> None:
        self._mu = None
        self._sigma2 = None

    def _set_from_classical(self, *, mu, sigma2) -> None:
        if not np.isfinite(mu):
            raise ValueError(f"Mean must be finite, got {mu}")
        if not (np.isfinite(sigma2) and sigma2 > 0):
            raise ValueError(f"Variance must be positive, got {sigma2}")
        self._mu = float(mu)
        self._sigma2 = float(sigma2)

    def _estimate(self, values: NDArray) -> bool:
        mu = float(np.mean(values))
        sigma2 = float(np.mean((values - mu) ** 2))
        if not (np.isfinite(mu) and np.isfinite(sigma2) and sigma2 > 0):
            return False
        self._mu = mu
        self._sigma2 = sigma2
        return True

    def _compute_classical_params(self):
        return NormalParams(mu=self._mu, sigma2=self._sigma2)

    def compute_robust_parameters(self, values, n_sigma: float) -> bool:
        """
        Computes parameters while ignoring outliers.

        A first estimation is done on all values, then parameters are
        re-estimated from the values lying within ``n_sigma`` standard
        deviations of the first mean.

        Parameters
        ----------
        values : ScalarSource or array_like
            Population of scalar values.
        n_sigma : float
            Half-width of the kept interval, in standard deviations.

        Returns
        -------
        success : bool
        """
        data = as_values(values)
        if not self.compute_parameters(data):
            return False

        max_deviation = n_sigma * np.sqrt(self._sigma2)
        finite = data[np.isfinite(data)]
        inliers = finite[np.abs(finite - self._mu) <= max_deviation]
        return self.compute_parameters(inliers)

    @property
    def support_lower(self) -> float:
        return -np.inf

    def pdf(self, x: ArrayLike):
        self._check_fitted()
        x = np.asarray(x, dtype=float)
        result = np.exp(-0.5 * (x - self._mu) ** 2 / self._sigma2) / np.sqrt(2 * np.pi * self._sigma2)
        return _as_output(x, result)

    def logpdf(self, x: ArrayLike):
        """Log of the probability density function."""
        self._check_fitted()
        x = np.asarray(x, dtype=float)
        result = -0.5 * (x - self._mu) ** 2 / self._sigma2 - 0.5 * np.log(2 * np.pi * self._sigma2)
        return _as_output(x, result)

    def cdf(self, x: ArrayLike):
        self._check_fitted()
        x = np.asarray(x, dtype=float)
        return _as_output(x, ndtr((x - self._mu) / np.sqrt(self._sigma2)))

    def ppf(self, q: ArrayLike):
        self._check_fitted()
        q = np.asarray(q, dtype=float)
        return _as_output(q, self._mu + np.sqrt(self._sigma2) * ndtri(q))

    def mean(self) -> float:
        self._check_fitted()
        return self._mu

    def var(self) -> float:
        self._check_fitted()
        return self._sigma2
