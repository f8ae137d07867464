"""
Tests for the Chi2 goodness-of-fit distance.

Tests that:
- The -1.0 sentinel is returned exactly when a precondition fails
- A population placed on the class quantiles gives a zero distance
- Histograms always sum to the number of valid values
- Boundary values follow the half-open class rule
- Floor policies never divide by zero
- Shard tallies merge into the full tally
"""

import numpy as np
import pytest

from pcstats.chi2 import (
    CHI2_ERROR,
    Chi2Options,
    FloorPolicy,
    Partition,
    build_classes,
    chi2_statistic,
    class_bounds,
    class_probabilities,
    compute_chi2_dist,
    merge_histograms,
    tally,
)
from pcstats.distributions import Gamma, Normal, Weibull
from pcstats.sources import ScalarField, from_array, from_scalar_field


SCENARIO_VALUES = np.array([1, 2, 2, 3, 3, 3, 4, 4, 5], dtype=float)


@pytest.fixture
def normal():
    return Normal.from_classical_params(mu=0.0, sigma2=1.0)


# ============================================================
# Preconditions
# ============================================================

class TestPreconditions:
    def test_invalid_distribution(self):
        histo = [7, 7, 7]
        assert compute_chi2_dist(Normal(), SCENARIO_VALUES, 3, histo) == CHI2_ERROR
        assert histo == [7, 7, 7]

    def test_empty_population(self, normal):
        histo = np.full(3, 7)
        assert normal.compute_chi2_dist(from_array(np.array([])), 3, histo) == CHI2_ERROR
        np.testing.assert_array_equal(histo, [7, 7, 7])

    def test_zero_classes(self, normal):
        histo = []
        assert normal.compute_chi2_dist(SCENARIO_VALUES, 0, histo) == CHI2_ERROR
        assert histo == []

    def test_negative_classes(self, normal):
        assert normal.compute_chi2_dist(SCENARIO_VALUES, -2) == CHI2_ERROR

    def test_no_population(self, normal):
        assert normal.compute_chi2_dist(None, 3) == CHI2_ERROR

    def test_only_invalid_values(self, normal):
        field = ScalarField("Roughness", [np.nan, np.nan])
        assert normal.compute_chi2_dist(from_scalar_field(field), 2) == CHI2_ERROR

    def test_distribution_invalidated_by_failed_refit(self):
        dist = Normal().fit(SCENARIO_VALUES)
        assert dist.compute_chi2_dist(SCENARIO_VALUES, 3) >= 0.0
        dist.compute_parameters(np.array([1.0, 1.0]))
        assert dist.compute_chi2_dist(SCENARIO_VALUES, 3) == CHI2_ERROR

    def test_histogram_length_mismatch(self, normal):
        with pytest.raises(ValueError, match="Histogram length"):
            normal.compute_chi2_dist(SCENARIO_VALUES, 3, histo=[0, 0])

    def test_point_classes_length_mismatch(self, normal):
        with pytest.raises(ValueError, match="point_classes"):
            normal.compute_chi2_dist(SCENARIO_VALUES, 3, point_classes=np.zeros(2, dtype=int))


# ============================================================
# Statistic
# ============================================================

class TestPerfectFit:
    @pytest.mark.parametrize("dist", [
        Normal.from_classical_params(mu=2.0, sigma2=3.0),
        Weibull.from_classical_params(shape=1.7, scale=2.0, value_shift=-1.0),
        Gamma.from_classical_params(shape=2.5, rate=0.5),
    ], ids=["normal", "weibull", "gamma"])
    @pytest.mark.parametrize("n_classes", [1, 2, 5, 12])
    def test_quantile_population_has_zero_distance(self, dist, n_classes):
        per_class = 4
        centers = dist.ppf((np.arange(n_classes) + 0.5) / n_classes)
        population = np.repeat(centers, per_class)
        histo = np.zeros(n_classes, dtype=int)

        distance = dist.compute_chi2_dist(population, n_classes, histo)

        assert distance == pytest.approx(0.0, abs=1e-9)
        np.testing.assert_array_equal(histo, np.full(n_classes, per_class))


class TestScenario:
    """Fit [1,2,2,3,3,3,4,4,5] and test it against itself with 3 classes."""

    @pytest.mark.parametrize("dist_class", [Normal, Weibull, Gamma])
    def test_counts_and_distance(self, dist_class):
        dist = dist_class()
        assert dist.compute_parameters(from_array(SCENARIO_VALUES))

        histo = [0, 0, 0]
        distance = dist.compute_chi2_dist(SCENARIO_VALUES, 3, histo)

        assert np.isfinite(distance)
        assert distance >= 0.0
        assert sum(histo) == 9
        assert all(isinstance(h, int) and h >= 0 for h in histo)

        classes = build_classes(dist, SCENARIO_VALUES, 3)
        assert classes.n == 9
        assert classes.expected.sum() == pytest.approx(9.0)
        assert classes.observed.sum() == 9
        assert classes.statistic() == pytest.approx(distance)

    def test_normal_classes(self):
        dist = Normal().fit(SCENARIO_VALUES)
        histo = [0, 0, 0]
        distance = dist.compute_chi2_dist(SCENARIO_VALUES, 3, histo)
        # bounds at mu -/+ 0.43 sigma = 2.50 and 3.50
        assert histo == [3, 3, 3]
        assert distance == pytest.approx(0.0, abs=1e-9)

    def test_matches_textbook_formula(self):
        dist = Normal.from_classical_params(mu=3.0, sigma2=1.0)
        classes = build_classes(dist, SCENARIO_VALUES, 4)
        expected = classes.expected
        observed = classes.observed
        assert np.all(expected >= 0.5)
        manual = np.sum((observed - expected) ** 2 / expected)
        assert classes.statistic() == pytest.approx(manual)

    def test_mismatched_model_has_large_distance(self):
        dist = Normal.from_classical_params(mu=0.0, sigma2=1.0)
        samples = np.random.default_rng(5).normal(3.0, 1.0, size=1000)
        assert dist.compute_chi2_dist(samples, 10) > 1000.0


class TestHistogram:
    def test_sums_to_population_size(self, normal):
        samples = np.random.default_rng(11).normal(size=777)
        for n_classes in (1, 3, 8, 50):
            histo = np.zeros(n_classes, dtype=np.int64)
            assert normal.compute_chi2_dist(samples, n_classes, histo) >= 0.0
            assert histo.sum() == 777
            assert np.all(histo >= 0)

    def test_ascending_order(self, normal):
        population = np.array([-5.0, -5.0, -5.0, 5.0])
        histo = [0, 0]
        normal.compute_chi2_dist(population, 2, histo)
        assert histo == [3, 1]

    def test_invalid_values_not_counted(self, normal):
        population = np.array([-1.0, np.nan, 1.0, np.nan, 0.5])
        histo = [0, 0]
        point_classes = np.zeros(5, dtype=int)
        normal.compute_chi2_dist(population, 2, histo, point_classes=point_classes)
        assert sum(histo) == 3
        np.testing.assert_array_equal(point_classes, [0, -1, 1, -1, 1])

    def test_infinite_values_not_counted(self, normal):
        histo = [0, 0]
        normal.compute_chi2_dist(np.array([np.inf, -1.0, 1.0]), 2, histo)
        assert sum(histo) == 2

    def test_generic_source(self, normal):
        class _Source:
            def size(self):
                return 4

            def value_at(self, index):
                return [-2.0, -1.0, 1.0, 2.0][index]

        histo = [0, 0]
        assert normal.compute_chi2_dist(_Source(), 2, histo) == pytest.approx(0.0)
        assert histo == [2, 2]


class TestBoundaries:
    def test_value_on_boundary_goes_to_upper_class(self):
        bounds = np.array([0.0, 1.0])
        histogram, classes = tally(np.array([-1.0, 0.0, 0.5, 1.0, 2.0]), bounds, 3)
        np.testing.assert_array_equal(classes, [0, 1, 1, 2, 2])
        np.testing.assert_array_equal(histogram, [1, 2, 2])

    def test_median_of_normal_in_upper_class(self, normal):
        point_classes = np.zeros(1, dtype=int)
        normal.compute_chi2_dist(np.array([0.0]), 2, point_classes=point_classes)
        assert point_classes[0] == 1

    def test_extremes_are_classified(self, normal):
        histo = [0, 0, 0]
        normal.compute_chi2_dist(np.array([-1e300, 0.0, 1e300]), 3, histo)
        assert histo == [1, 1, 1]

    def test_equiprobable_bounds(self, normal):
        bounds = class_bounds(normal, 4, Partition.EQUIPROBABLE)
        np.testing.assert_allclose(normal.compute_p_from_zero(bounds), [0.25, 0.5, 0.75])

    def test_class_probabilities_sum_to_one(self):
        dist = Weibull.from_classical_params(shape=2.0, scale=1.0, value_shift=3.0)
        probabilities = class_probabilities(dist, np.array([2.0, 3.5, 4.0]))
        assert probabilities[0] == 0.0
        assert probabilities.sum() == pytest.approx(1.0)


class TestEqualWidthPartition:
    def test_bounds_span_population(self, normal):
        values = np.array([-2.0, -1.0, 0.0, 2.0])
        bounds = class_bounds(normal, 4, Partition.EQUAL_WIDTH, values)
        np.testing.assert_allclose(bounds, [-1.0, 0.0, 1.0])

    def test_distance(self, normal):
        options = Chi2Options(partition=Partition.EQUAL_WIDTH)
        samples = np.random.default_rng(2).normal(size=2000)
        histo = np.zeros(10, dtype=int)
        distance = normal.compute_chi2_dist(samples, 10, histo, options=options)
        assert 0.0 <= distance < 50.0
        assert histo.sum() == 2000

    def test_constant_population(self, normal):
        options = Chi2Options(partition=Partition.EQUAL_WIDTH)
        histo = [0, 0, 0]
        distance = normal.compute_chi2_dist(np.full(6, 0.2), 3, histo, options=options)
        assert np.isfinite(distance) and distance >= 0.0
        assert histo == [0, 0, 6]

    def test_requires_values(self, normal):
        with pytest.raises(ValueError):
            class_bounds(normal, 3, Partition.EQUAL_WIDTH)


# ============================================================
# Floor policies
# ============================================================

class TestFloorPolicy:
    def test_merge_pools_small_classes(self):
        observed = np.array([1, 0, 0, 5, 4])
        expected = np.array([0.2, 0.1, 0.3, 4.4, 5.0])
        # pools: [0.2+0.1+0.3] = 0.6 (obs 1), 4.4 (obs 5), 5.0 (obs 4)
        manual = (1 - 0.6) ** 2 / 0.6 + (5 - 4.4) ** 2 / 4.4 + (4 - 5.0) ** 2 / 5.0
        assert chi2_statistic(observed, expected, FloorPolicy.MERGE) == pytest.approx(manual)

    def test_merge_trailing_pool(self):
        observed = np.array([3, 2, 1])
        expected = np.array([3.0, 2.9, 0.1])
        manual = (3 - 3.0) ** 2 / 3.0 + (3 - 3.0) ** 2 / 3.0
        assert chi2_statistic(observed, expected, FloorPolicy.MERGE) == pytest.approx(manual)

    def test_skip_ignores_small_classes(self):
        observed = np.array([2, 4, 3])
        expected = np.array([0.0, 4.5, 0.4])
        manual = (4 - 4.5) ** 2 / 4.5
        assert chi2_statistic(observed, expected, FloorPolicy.SKIP) == pytest.approx(manual)

    def test_zero_expected_never_divides(self):
        observed = np.array([0, 0, 9])
        expected = np.zeros(3)
        with np.errstate(all='raise'):
            assert chi2_statistic(observed, expected, FloorPolicy.SKIP) == 0.0
            assert chi2_statistic(observed, expected, FloorPolicy.MERGE) == 0.0

    def test_few_points_many_classes(self, normal):
        population = np.array([-0.3, 0.1])
        for policy in FloorPolicy:
            histo = np.zeros(10, dtype=int)
            options = Chi2Options(floor_policy=policy)
            distance = normal.compute_chi2_dist(population, 10, histo, options=options)
            assert np.isfinite(distance) and distance >= 0.0
            assert histo.sum() == 2

    def test_custom_floor(self):
        observed = np.array([2, 2, 6])
        expected = np.array([3.0, 3.0, 4.0])
        # every class below 5: pooled into one class of expected 10
        assert chi2_statistic(observed, expected, FloorPolicy.MERGE, min_expected=5.0) == 0.0

    def test_options_validation(self):
        with pytest.raises(ValueError, match="min_expected"):
            Chi2Options(min_expected=0.0)
        with pytest.raises(ValueError):
            Chi2Options(partition="histogram")

    def test_options_from_strings(self):
        options = Chi2Options(partition="equal_width", floor_policy="skip")
        assert options.partition is Partition.EQUAL_WIDTH
        assert options.floor_policy is FloorPolicy.SKIP


# ============================================================
# Shards
# ============================================================

class TestShards:
    def test_merged_shards_equal_full_tally(self, normal):
        samples = np.random.default_rng(8).normal(size=1001)
        bounds = class_bounds(normal, 6)
        full, _ = tally(samples, bounds, 6)
        shards = [tally(chunk, bounds, 6)[0] for chunk in np.array_split(samples, 4)]
        merged = merge_histograms(*shards)
        np.testing.assert_array_equal(merged, full)

        expected = class_probabilities(normal, bounds) * samples.size
        assert chi2_statistic(merged, expected) == pytest.approx(
            normal.compute_chi2_dist(samples, 6)
        )

    def test_merge_requires_input(self):
        with pytest.raises(ValueError):
            merge_histograms()
