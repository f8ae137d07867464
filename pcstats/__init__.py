"""
pcstats: fitted scalar distributions and Chi2 goodness-of-fit for point clouds.

A distribution is fitted to a population of per-point scalar values
(roughness, curvature, distance to a model, ...) and a Chi-square distance
tells how far another population deviates from the fitted model. This is the
building block of statistical noise and outlier filters.

Key features:
- Read-only, zero-copy scalar views (pcstats.sources)
- Distribution contract with explicit validity (pcstats.base)
- Normal, Weibull and Gamma variants (pcstats.distributions)
- Chi2 distance with configurable class partition (pcstats.chi2)
- Frozen dataclass parameter containers (pcstats.params)
"""

from pcstats.sources import (
    ScalarSource,
    ScalarField,
    ScalarView,
    from_array,
    from_scalar_field,
)
from pcstats.base import Distribution
from pcstats.distributions import Normal, Weibull, Gamma
from pcstats.chi2 import (
    CHI2_ERROR,
    Chi2Classes,
    Chi2Options,
    FloorPolicy,
    Partition,
    compute_chi2_dist,
)
from pcstats.params import NormalParams, WeibullParams, GammaParams

__version__ = "1.0.0"

__all__ = [
    # Scalar sources
    "ScalarSource",
    "ScalarField",
    "ScalarView",
    "from_array",
    "from_scalar_field",
    # Distributions
    "Distribution",
    "Normal",
    "Weibull",
    "Gamma",
    # Chi2 test
    "CHI2_ERROR",
    "Chi2Classes",
    "Chi2Options",
    "FloorPolicy",
    "Partition",
    "compute_chi2_dist",
    # Parameter dataclasses
    "NormalParams",
    "WeibullParams",
    "GammaParams",
]
