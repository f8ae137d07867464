"""
Base class for fitted scalar distributions.

This module provides the abstract base class shared by every parametric model
used to classify point-cloud scalar values. A distribution is constructed
unfitted, estimates its parameters from a :class:`~pcstats.sources.ScalarSource`
and then answers density and cumulative-probability queries.

The API includes:

- **Validity**: :meth:`is_valid`, :meth:`get_name`
- **Fitting**: :meth:`compute_parameters` (returns ``bool``), :meth:`fit`
  (returns self for method chaining)
- **Density**: :meth:`compute_p`, :meth:`pdf`
- **Cumulative probability**: :meth:`compute_p_from_zero`,
  :meth:`compute_p_interval`, :meth:`cdf`
- **Quantiles**: :meth:`ppf`
- **Goodness of fit**: :meth:`compute_chi2_dist`
- **Random sampling**: :meth:`rvs`
- **Moments**: :meth:`mean`, :meth:`var`, :meth:`std`

Life cycle
----------
``compute_parameters`` always starts by discarding the current parameters, so
a distribution is either fitted from the last population it was given or not
fitted at all. Queries on an unfitted distribution raise ``ValueError``.
Failed fits are reported by the return value only.

Fitting mutates the instance and is not thread-safe. Once fitted, density,
probability and Chi2 queries do not write instance state and may be issued
from several threads. The one exception is :attr:`classical_params` (also
read by ``repr``), which stores its value on first access; concurrent first
accesses store equal values.
"""

import logging
import warnings
from abc import ABC, abstractmethod
from functools import cached_property
from typing import Optional, Tuple, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pcstats import chi2
from pcstats.sources import as_values

logger = logging.getLogger(__name__)


def _as_output(x, result):
    """Return a float for scalar input, the array otherwise."""
    if np.isscalar(x) or np.ndim(x) == 0:
        return float(result)
    return result


class Distribution(ABC):
    """
    Abstract base class for fitted scalar distributions.

    Subclasses provide:

    - ``name``: stable identifier of the variant (diagnostics only)
    - ``support_lower``: natural lower bound of the support (property)
    - ``_estimate(values)``: estimate parameters from finite values, return
      ``True`` on success
    - ``_set_from_classical(**kwargs)``: set parameters explicitly, raise
      ``ValueError`` when they are not admissible
    - ``_reset_parameters()``: forget all parameters
    - ``_compute_classical_params()``: frozen dataclass of the parameters
    - ``pdf``, ``cdf``, ``ppf``, ``mean``, ``var``

    Attributes
    ----------
    _fitted : bool
        Whether parameters have been successfully estimated or set.
    _cached_attrs : tuple of str
        Names of ``cached_property`` attributes cleared on every state change.
    """

    name: str = "Generic"

    _cached_attrs: Tuple[str, ...] = ('classical_params',)

    def __init__(self):
        self._fitted = False

    # ============================================================
    # Validity
    # ============================================================

    def get_name(self) -> str:
        """Returns the distribution name."""
        return self.name

    def is_valid(self) -> bool:
        """
        Indicates whether the distribution parameters are valid.

        True only after a successful :meth:`compute_parameters` (or explicit
        :meth:`set_classical_params`) and before any subsequent failed re-fit.
        """
        return self._fitted

    def _check_fitted(self) -> None:
        if not self._fitted:
            raise ValueError(
                f"{self.__class__.__name__} parameters not set. "
                "Use compute_parameters(), fit() or from_classical_params()."
            )

    def _invalidate_cache(self) -> None:
        for attr in self._cached_attrs:
            self.__dict__.pop(attr, None)

    def _clear(self) -> None:
        self._fitted = False
        self._reset_parameters()
        self._invalidate_cache()

    # ============================================================
    # Fitting
    # ============================================================

    def compute_parameters(self, values) -> bool:
        """
        Computes the distribution parameters from a set of values.

        Previous parameters are discarded before estimation. Non-finite
        values (NaN marks an invalid scalar) are ignored.

        Parameters
        ----------
        values : ScalarSource or array_like
            Population of scalar values.

        Returns
        -------
        success : bool
            True if the parameters could be estimated. On failure the
            distribution stays invalid.
        """
        self._clear()

        data = as_values(values)
        data = data[np.isfinite(data)]
        if data.size == 0:
            logger.debug("%s: no valid value to estimate parameters from", self.name)
            return False

        with warnings.catch_warnings(), np.errstate(all='ignore'):
            warnings.simplefilter("ignore")
            success = bool(self._estimate(data))

        if not success:
            logger.debug("%s: parameter estimation failed on %d values", self.name, data.size)
            self._clear()
            return False

        self._fitted = True
        self._invalidate_cache()
        return True

    def fit(self, data, *args, **kwargs) -> 'Distribution':
        """
        Fit distribution parameters to data (sklearn-style).

        Same as :meth:`compute_parameters` but raises on failure.

        Parameters
        ----------
        data : ScalarSource or array_like
            Data to fit the distribution to.

        Returns
        -------
        self : Distribution
            The fitted distribution instance (for method chaining).

        Raises
        ------
        ValueError
            If the parameters cannot be estimated from ``data``.
        """
        if not self.compute_parameters(data):
            raise ValueError(
                f"Could not estimate {self.__class__.__name__} parameters from the given values"
            )
        return self

    @classmethod
    def from_classical_params(cls, **kwargs) -> 'Distribution':
        """
        Create a fitted distribution from explicit parameters.

        Examples
        --------
        >>> dist = Normal.from_classical_params(mu=0.0, sigma2=1.0)
        """
        instance = cls()
        instance.set_classical_params(**kwargs)
        return instance

    def set_classical_params(self, **kwargs) -> 'Distribution':
        """
        Set parameters explicitly.

        Raises
        ------
        ValueError
            If the parameters are not admissible. The distribution is left
            invalid in that case.
        """
        self._clear()
        try:
            self._set_from_classical(**kwargs)
        except (TypeError, ValueError):
            self._clear()
            raise
        self._fitted = True
        self._invalidate_cache()
        return self

    @cached_property
    def classical_params(self):
        """Fitted parameters as a frozen dataclass (cached)."""
        self._check_fitted()
        return self._compute_classical_params()

    # ============================================================
    # Subclass contract
    # ============================================================

    @abstractmethod
    def _estimate(self, values: NDArray) -> bool:
        """
        Estimate parameters from a non-empty array of finite values.

        Store the parameters as named attributes and return True, or return
        False when the population is degenerate for this model.
        """

    @abstractmethod
    def _set_from_classical(self, **kwargs) -> None:
        """Store explicit parameters, raise ValueError if not admissible."""

    @abstractmethod
    def _reset_parameters(self) -> None:
        """Forget all parameters."""

    @abstractmethod
    def _compute_classical_params(self):
        """Build the frozen dataclass of the current parameters."""

    @property
    @abstractmethod
    def support_lower(self) -> float:
        """Natural lower bound of the support, used by compute_p_from_zero."""

    # ============================================================
    # scipy-like evaluators
    # ============================================================

    @abstractmethod
    def pdf(self, x: ArrayLike) -> Union[float, NDArray]:
        """
        Probability density function.

        Parameters
        ----------
        x : array_like
            Points at which to evaluate the PDF.

        Returns
        -------
        pdf : float or ndarray
            Probability density at each point.
        """

    @abstractmethod
    def cdf(self, x: ArrayLike) -> Union[float, NDArray]:
        """
        Cumulative distribution function from ``support_lower``.

        Parameters
        ----------
        x : array_like
            Points at which to evaluate the CDF.

        Returns
        -------
        cdf : float or ndarray
            Cumulative probability at each point.
        """

    @abstractmethod
    def ppf(self, q: ArrayLike) -> Union[float, NDArray]:
        """
        Percent point function (inverse of CDF).

        Parameters
        ----------
        q : array_like
            Probabilities in [0, 1].

        Returns
        -------
        ppf : float or ndarray
            Quantiles corresponding to the given probabilities.
        """

    @abstractmethod
    def mean(self) -> float:
        """Mean of the distribution."""

    @abstractmethod
    def var(self) -> float:
        """Variance of the distribution."""

    def std(self) -> float:
        """Standard deviation of the distribution."""
        return float(np.sqrt(self.var()))

    def rvs(self, size: Optional[Union[int, tuple]] = None,
            random_state: Optional[Union[int, np.random.Generator]] = None):
        """
        Random variate sampling by inverse transform.

        Parameters
        ----------
        size : int or tuple of ints, optional
            Shape of the output. If None, returns a scalar.
        random_state : int or numpy.random.Generator, optional
            Random state for reproducibility.

        Returns
        -------
        rvs : float or ndarray
            Random variates.
        """
        self._check_fitted()
        if random_state is None:
            rng = np.random.default_rng()
        elif isinstance(random_state, int):
            rng = np.random.default_rng(random_state)
        else:
            rng = random_state
        return self.ppf(rng.uniform(size=size))

    # ============================================================
    # Contract queries
    # ============================================================

    def compute_p(self, x: ArrayLike) -> Union[float, NDArray]:
        """
        Computes the probability density at x.

        Raises
        ------
        ValueError
            If the distribution is not valid.
        """
        self._check_fitted()
        return self.pdf(x)

    def compute_p_from_zero(self, x: ArrayLike) -> Union[float, NDArray]:
        """
        Computes the cumulative probability between the support lower bound and x.

        Raises
        ------
        ValueError
            If the distribution is not valid.
        """
        self._check_fitted()
        return self.cdf(x)

    def compute_p_interval(self, x1: ArrayLike, x2: ArrayLike) -> Union[float, NDArray]:
        """
        Computes the cumulative probability between x1 and x2.

        Always equal to ``compute_p_from_zero(x2) - compute_p_from_zero(x1)``.

        Raises
        ------
        ValueError
            If the distribution is not valid or if ``x1 > x2``.
        """
        self._check_fitted()
        if np.any(np.asarray(x1) > np.asarray(x2)):
            raise ValueError("Lower boundary x1 must not exceed upper boundary x2")
        return self.compute_p_from_zero(x2) - self.compute_p_from_zero(x1)

    def compute_chi2_dist(self, population, number_of_classes: int, histo=None, *,
                          options: Optional['chi2.Chi2Options'] = None,
                          point_classes: Optional[NDArray] = None) -> float:
        """
        Computes the Chi2 distance between this model and a population.

        Parameters
        ----------
        population : ScalarSource or array_like
            Scalar values attached to the tested points.
        number_of_classes : int
            Number of classes of the Chi2 test.
        histo : array of int, optional
            Caller-allocated array of length ``number_of_classes`` receiving
            the observed count of each class (ascending values).
        options : Chi2Options, optional
            Partition and floor policies.
        point_classes : array of int, optional
            Caller-allocated array receiving each point's class index
            (-1 for invalid values).

        Returns
        -------
        dist : float
            The Chi2 distance, or -1.0 if a precondition failed.
        """
        return chi2.compute_chi2_dist(
            self, population, number_of_classes, histo,
            options=options, point_classes=point_classes,
        )

    def __repr__(self) -> str:
        if not self._fitted:
            return f"{self.__class__.__name__}(not fitted)"
        params = ", ".join(f"{k}={v:.6g}" for k, v in self.classical_params.items())
        return f"{self.__class__.__name__}({params})"
