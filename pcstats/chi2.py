"""
Chi-square goodness-of-fit distance between a fitted distribution and a
population of scalar values.

The support of the distribution is cut into :math:`K` contiguous classes.
For each class :math:`i`, the expected count is

.. math::
    E_i = N \\cdot P(b_{i} \\leq X < b_{i+1})

under the fitted model, and the observed count :math:`O_i` is the number of
population values falling in :math:`[b_i, b_{i+1})` (the last class is closed
on the right). The distance is

.. math::
    \\chi^2 = \\sum_i \\frac{(O_i - E_i)^2}{E_i}

Partition policies (:class:`Partition`):

- ``EQUIPROBABLE``: :math:`b_i = F^{-1}(i / K)`, every class has mass
  :math:`1/K`. This is the conventional choice for a Chi2 test.
- ``EQUAL_WIDTH``: interior bounds evenly spaced between the smallest and
  largest population values.

In both cases the first class starts at the support lower bound and the last
class runs to :math:`+\\infty`, so the class probabilities sum to one.

Classes whose expected count is below ``min_expected`` (0.5 by default, i.e.
the count rounds to zero) are handled by a :class:`FloorPolicy`:

- ``MERGE``: consecutive classes are pooled until the pooled expected count
  reaches ``min_expected``. A deficient trailing pool joins the previous one.
- ``SKIP``: deficient classes contribute zero.

Non-finite population values are not classified and do not count in
:math:`N`. Classification is independent per value, so a population may be
tallied in shards (:func:`tally`) and merged (:func:`merge_histograms`)
before computing the statistic.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from pcstats.sources import as_values

logger = logging.getLogger(__name__)

#: Returned by :func:`compute_chi2_dist` when a precondition fails.
CHI2_ERROR = -1.0


class Partition(str, Enum):
    """How the support is cut into classes."""
    EQUIPROBABLE = "equiprobable"
    EQUAL_WIDTH = "equal_width"


class FloorPolicy(str, Enum):
    """How classes with a negligible expected count are handled."""
    MERGE = "merge"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class Chi2Options:
    """
    Options of the Chi2 test.

    Attributes
    ----------
    partition : Partition
        Class partition policy.
    floor_policy : FloorPolicy
        Policy for classes with an expected count below ``min_expected``.
    min_expected : float
        Expected-count floor, strictly positive.
    """
    partition: Partition = Partition.EQUIPROBABLE
    floor_policy: FloorPolicy = FloorPolicy.MERGE
    min_expected: float = 0.5

    def __post_init__(self):
        # accept plain strings
        object.__setattr__(self, 'partition', Partition(self.partition))
        object.__setattr__(self, 'floor_policy', FloorPolicy(self.floor_policy))
        if not self.min_expected > 0:
            raise ValueError(f"min_expected must be positive, got {self.min_expected}")


@dataclass(frozen=True)
class Chi2Classes:
    """
    Class partition of one Chi2 test.

    Attributes
    ----------
    bounds : ndarray, shape (K - 1,)
        Interior class boundaries, ascending.
    probabilities : ndarray, shape (K,)
        Mass of each class under the fitted distribution.
    expected : ndarray, shape (K,)
        Expected counts, ``probabilities * n``.
    observed : ndarray of int, shape (K,)
        Observed counts.
    n : int
        Number of classified values.
    """
    bounds: NDArray
    probabilities: NDArray
    expected: NDArray
    observed: NDArray
    n: int

    @property
    def number_of_classes(self) -> int:
        return self.observed.shape[0]

    def statistic(self, floor_policy: FloorPolicy = FloorPolicy.MERGE,
                  min_expected: float = 0.5) -> float:
        """Chi2 distance of this partition under the given floor policy."""
        return chi2_statistic(self.observed, self.expected, floor_policy, min_expected)


def class_bounds(distribution, number_of_classes: int,
                 partition: Partition = Partition.EQUIPROBABLE,
                 values: Optional[NDArray] = None) -> NDArray:
    """
    Interior boundaries of the Chi2 classes.

    Parameters
    ----------
    distribution : Distribution
        Fitted distribution.
    number_of_classes : int
        Number of classes :math:`K \\geq 1`.
    partition : Partition
        Partition policy.
    values : ndarray, optional
        Finite population values, required by ``EQUAL_WIDTH``.

    Returns
    -------
    bounds : ndarray, shape (K - 1,)
    """
    partition = Partition(partition)
    if number_of_classes < 2:
        return np.empty(0)

    if partition is Partition.EQUIPROBABLE:
        q = np.arange(1, number_of_classes) / number_of_classes
        return np.asarray(distribution.ppf(q), dtype=float)

    if values is None or values.size == 0:
        raise ValueError("Equal-width partition requires population values")
    edges = np.linspace(values.min(), values.max(), number_of_classes + 1)
    return edges[1:-1]


def class_probabilities(distribution, bounds: NDArray) -> NDArray:
    """
    Mass of each class delimited by ``bounds`` under ``distribution``.

    The outer classes extend to the support lower bound and to infinity.
    """
    edges = np.concatenate(([-np.inf], bounds, [np.inf]))
    cumulative = np.asarray(distribution.compute_p_from_zero(edges), dtype=float)
    return np.clip(np.diff(cumulative), 0.0, None)


def tally(values: NDArray, bounds: NDArray, number_of_classes: int):
    """
    Assign values to classes and count them.

    Classes are half-open ``[lower, upper)``, the last one is closed.
    Non-finite values get class ``-1`` and are not counted.

    Returns
    -------
    histogram : ndarray of int, shape (K,)
    classes : ndarray of int, shape (n,)
    """
    values = np.asarray(values, dtype=float)
    finite = np.isfinite(values)
    classes = np.full(values.shape[0], -1, dtype=np.int64)
    classes[finite] = np.searchsorted(bounds, values[finite], side='right')
    histogram = np.bincount(classes[finite], minlength=number_of_classes)
    return histogram.astype(np.int64), classes


def merge_histograms(*histograms) -> NDArray:
    """Sum per-shard histograms of the same partition."""
    if not histograms:
        raise ValueError("At least one histogram is required")
    return np.sum([np.asarray(h, dtype=np.int64) for h in histograms], axis=0)


def chi2_statistic(observed: NDArray, expected: NDArray,
                   floor_policy: FloorPolicy = FloorPolicy.MERGE,
                   min_expected: float = 0.5) -> float:
    """
    Chi2 distance :math:`\\sum (O_i - E_i)^2 / E_i`.

    Classes with ``expected < min_expected`` are pooled (``MERGE``) or
    ignored (``SKIP``). Never divides by zero.
    """
    observed = np.asarray(observed, dtype=float)
    expected = np.asarray(expected, dtype=float)

    if FloorPolicy(floor_policy) is FloorPolicy.SKIP:
        kept = expected >= min_expected
        return float(np.sum((observed[kept] - expected[kept]) ** 2 / expected[kept]))

    pooled_observed = []
    pooled_expected = []
    acc_o = 0.0
    acc_e = 0.0
    for o, e in zip(observed, expected):
        acc_o += o
        acc_e += e
        if acc_e >= min_expected:
            pooled_observed.append(acc_o)
            pooled_expected.append(acc_e)
            acc_o = 0.0
            acc_e = 0.0

    if acc_e > 0.0 or acc_o > 0.0:
        if pooled_expected:
            pooled_observed[-1] += acc_o
            pooled_expected[-1] += acc_e
        else:
            pooled_observed.append(acc_o)
            pooled_expected.append(acc_e)

    if len(pooled_expected) < observed.shape[0]:
        logger.debug("Chi2: %d classes pooled into %d", observed.shape[0], len(pooled_expected))

    pooled_observed = np.asarray(pooled_observed)
    pooled_expected = np.asarray(pooled_expected)
    kept = pooled_expected > 0.0
    return float(np.sum(
        (pooled_observed[kept] - pooled_expected[kept]) ** 2 / pooled_expected[kept]
    ))


def _partition(distribution, values: NDArray, number_of_classes: int,
               partition: Partition):
    finite = values[np.isfinite(values)]
    bounds = class_bounds(distribution, number_of_classes, partition, finite)
    probabilities = class_probabilities(distribution, bounds)
    observed, classes = tally(values, bounds, number_of_classes)
    n = int(finite.shape[0])
    classes_info = Chi2Classes(
        bounds=bounds,
        probabilities=probabilities,
        expected=probabilities * n,
        observed=observed,
        n=n,
    )
    return classes_info, classes


def build_classes(distribution, population, number_of_classes: int,
                  partition: Partition = Partition.EQUIPROBABLE) -> Chi2Classes:
    """
    Build the class partition of a fitted distribution against a population.

    Diagnostic counterpart of :func:`compute_chi2_dist`: exposes bounds,
    expected and observed counts instead of the distance only. Unlike
    :func:`compute_chi2_dist`, preconditions raise ``ValueError``.
    """
    distribution._check_fitted()
    if number_of_classes < 1:
        raise ValueError(f"number_of_classes must be at least 1, got {number_of_classes}")
    values = as_values(population)
    if not np.any(np.isfinite(values)):
        raise ValueError("Population has no valid value")
    return _partition(distribution, values, number_of_classes, partition)[0]


def compute_chi2_dist(distribution, population, number_of_classes: int, histo=None, *,
                      options: Optional[Chi2Options] = None,
                      point_classes: Optional[NDArray] = None) -> float:
    """
    Computes the Chi2 distance between a fitted distribution and a population.

    Parameters
    ----------
    distribution : Distribution
        Distribution to test; must be valid.
    population : ScalarSource or array_like
        Scalar values of the tested points.
    number_of_classes : int
        Number of classes, at least 1.
    histo : array of int, optional
        Caller-allocated array of length ``number_of_classes``, receives the
        observed counts in ascending class order.
    options : Chi2Options, optional
        Partition and floor policies; defaults to ``Chi2Options()``.
    point_classes : array of int, optional
        Caller-allocated array with one entry per point, receives the class
        index of each point (-1 for non-finite values).

    Returns
    -------
    dist : float
        The Chi2 distance (non-negative), or ``CHI2_ERROR`` (-1.0) if the
        distribution is invalid, the population is empty or
        ``number_of_classes < 1``. Outputs are left untouched in that case.

    Raises
    ------
    ValueError
        If ``histo`` or ``point_classes`` does not have the required length.
    """
    if options is None:
        options = Chi2Options()

    if not distribution.is_valid():
        logger.debug("Chi2: %s distribution is not valid", distribution.get_name())
        return CHI2_ERROR
    if number_of_classes < 1:
        logger.debug("Chi2: invalid number of classes (%d)", number_of_classes)
        return CHI2_ERROR
    if population is None:
        logger.debug("Chi2: no population")
        return CHI2_ERROR

    values = as_values(population)
    finite = np.isfinite(values)
    n = int(np.count_nonzero(finite))
    if n == 0:
        logger.debug("Chi2: empty population (%d points, none valid)", values.shape[0])
        return CHI2_ERROR

    if histo is not None and len(histo) != number_of_classes:
        raise ValueError(
            f"Histogram length {len(histo)} does not match number of classes {number_of_classes}"
        )
    if point_classes is not None and len(point_classes) != values.shape[0]:
        raise ValueError(
            f"point_classes length {len(point_classes)} does not match population size {values.shape[0]}"
        )

    partition, classes = _partition(distribution, values, number_of_classes, options.partition)

    if histo is not None:
        histo[:] = partition.observed.tolist()
    if point_classes is not None:
        point_classes[:] = classes

    return partition.statistic(options.floor_policy, options.min_expected)
