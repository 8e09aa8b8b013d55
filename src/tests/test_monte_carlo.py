"""
===============================================================================
EFFICIENT - Monte Carlo Estimator Test Suite
===============================================================================
Tests for the hit-or-miss estimators covering output range, input
validation, exact agreement between the iterative and vectorised strategies
on shared draws, random-source consumption, convergence towards 1/3 at the
expected 1/sqrt(N) rate, the mean-value estimator and the partitioned
multi-process estimator.

Statistical checks use fixed seeds and bands of several standard errors,
never exact equality with 1/3.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose

from efficient.core.constants import TRUE_INTEGRAL
from efficient.core.errors import InvalidArgumentError
from efficient.simulation.monte_carlo import (
    convergence_study,
    count_hits_iterative,
    count_hits_vectorized,
    estimate_iterative,
    estimate_mean_value,
    estimate_parallel,
    estimate_vectorized,
    partition_sizes,
    square,
    standard_error,
)


ESTIMATORS = [estimate_iterative, estimate_vectorized, estimate_mean_value]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def seed():
    """Return the seed shared by paired-strategy tests."""
    return 20240601


# =============================================================================
# Test: Output range
# =============================================================================

class TestRange:
    """Every estimate is a fraction in [0, 1]."""

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    @pytest.mark.parametrize("n", [1, 2, 10, 1000])
    def test_estimate_in_unit_interval(self, estimator, n):
        estimate = estimator(n, np.random.default_rng(n))
        assert 0.0 <= estimate <= 1.0

    def test_single_draw_is_zero_or_one(self):
        for s in range(20):
            assert estimate_iterative(1, s) in (0.0, 1.0)

    def test_parallel_in_unit_interval(self):
        assert 0.0 <= estimate_parallel(500, num_workers=1, seed=3) <= 1.0


# =============================================================================
# Test: Input validation
# =============================================================================

class TestInvalidArgument:
    """Non-positive or non-integral sample counts are rejected."""

    @pytest.mark.parametrize("estimator", [estimate_iterative, estimate_vectorized])
    @pytest.mark.parametrize("bad_n", [0, -1, -1000, 2.5, float("nan"),
                                       float("inf"), "100", None, True])
    def test_invalid_sample_count(self, estimator, bad_n):
        with pytest.raises(InvalidArgumentError):
            estimator(bad_n, np.random.default_rng(0))

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            estimate_vectorized(0)

    def test_parallel_rejects_non_positive(self):
        with pytest.raises(InvalidArgumentError):
            estimate_parallel(-5, num_workers=1)

    @pytest.mark.parametrize("bad_seed", ["abc", -1, 2.5, True, [1, 2]])
    def test_parallel_rejects_bad_seed(self, bad_seed):
        with pytest.raises(InvalidArgumentError, match="seed"):
            estimate_parallel(100, num_workers=1, seed=bad_seed)

    @pytest.mark.parametrize("bad_seed", ["abc", -3])
    def test_convergence_rejects_bad_seed(self, bad_seed):
        with pytest.raises(InvalidArgumentError, match="seed"):
            convergence_study(sample_sizes=[100], num_trials=2, seed=bad_seed)

    @pytest.mark.parametrize("bad_sizes", [None, 100, "100"])
    def test_convergence_rejects_non_sequence_sizes(self, bad_sizes):
        with pytest.raises(InvalidArgumentError, match="sample_sizes"):
            convergence_study(sample_sizes=bad_sizes, num_trials=2)

    def test_parallel_accepts_none_seed(self):
        assert 0.0 <= estimate_parallel(100, num_workers=1, seed=None) <= 1.0

    def test_invalid_batch_size(self):
        with pytest.raises(InvalidArgumentError, match="batch_size"):
            estimate_vectorized(100, 0, batch_size=0)

    def test_integral_float_accepted(self):
        assert estimate_vectorized(1e3, 1) == estimate_vectorized(1000, 1)

    def test_numpy_integer_accepted(self):
        assert estimate_iterative(np.int64(50), 1) == estimate_iterative(50, 1)


# =============================================================================
# Test: Iterative and vectorised strategies agree exactly
# =============================================================================

class TestStrategyEquivalence:
    """Same draws in, same hit count out, regardless of execution strategy."""

    @pytest.mark.parametrize("n", [1, 7, 100, 12345])
    def test_same_hits_for_same_seed(self, n, seed):
        hits_loop = count_hits_iterative(n, np.random.default_rng(seed))
        hits_vec = count_hits_vectorized(n, np.random.default_rng(seed))
        assert hits_loop == hits_vec

    def test_same_hits_one_million(self, seed):
        """The headline scenario: one million draws, identical hit count."""
        n = 1_000_000
        hits_loop = count_hits_iterative(n, np.random.default_rng(seed))
        hits_vec = count_hits_vectorized(n, np.random.default_rng(seed))
        assert hits_loop == hits_vec
        assert (estimate_iterative(n, np.random.default_rng(seed))
                == estimate_vectorized(n, np.random.default_rng(seed)))

    @pytest.mark.parametrize("batch_size", [1, 3, 64, 999, 1000, 5000])
    def test_batch_size_does_not_change_result(self, batch_size, seed):
        n = 1000
        reference = count_hits_vectorized(n, np.random.default_rng(seed))
        assert count_hits_vectorized(
            n, np.random.default_rng(seed), batch_size=batch_size
        ) == reference

    def test_custom_integrand_agrees(self, seed):
        def cube(x):
            return x * x * x

        n = 5000
        assert (count_hits_iterative(n, np.random.default_rng(seed), cube)
                == count_hits_vectorized(n, np.random.default_rng(seed), cube))

    def test_int_seed_equivalent_to_generator(self, seed):
        assert estimate_vectorized(2000, seed) == estimate_vectorized(
            2000, np.random.default_rng(seed))


# =============================================================================
# Test: Random source consumption
# =============================================================================

class TestRandomSource:
    """An injected generator is consumed exactly 2n draws and nothing else."""

    @pytest.mark.parametrize("counter", [count_hits_iterative, count_hits_vectorized])
    def test_consumes_two_draws_per_sample(self, counter, seed):
        n = 250
        gen = np.random.default_rng(seed)
        counter(n, gen)

        reference = np.random.default_rng(seed)
        reference.random(2 * n)
        assert gen.random() == reference.random()

    def test_successive_calls_continue_stream(self, seed):
        gen = np.random.default_rng(seed)
        first = count_hits_vectorized(100, gen)
        second = count_hits_vectorized(100, gen)

        both = count_hits_vectorized(200, np.random.default_rng(seed))
        assert first + second == both

    def test_hit_test_uses_square(self):
        assert square(0.5) == 0.25
        assert_allclose(square(np.array([0.0, 0.5, 1.0])), [0.0, 0.25, 1.0])


# =============================================================================
# Test: Convergence towards 1/3
# =============================================================================

class TestConvergence:
    """Estimates approach 1/3 with error shrinking roughly as 1/sqrt(N)."""

    @pytest.mark.parametrize("n", [1_000, 100_000, 10_000_000])
    def test_vectorized_within_five_standard_errors(self, n, seed):
        estimate = estimate_vectorized(n, np.random.default_rng(seed))
        assert abs(estimate - TRUE_INTEGRAL) < 5.0 * standard_error(n)

    @pytest.mark.parametrize("n", [1_000, 100_000])
    def test_iterative_within_five_standard_errors(self, n, seed):
        estimate = estimate_iterative(n, np.random.default_rng(seed))
        assert abs(estimate - TRUE_INTEGRAL) < 5.0 * standard_error(n)

    def test_error_shrinks_with_sample_size(self):
        table = convergence_study(sample_sizes=[1_000, 100_000], num_trials=20, seed=1)
        err_small = table.loc[1_000, "mean_abs_error"]
        err_large = table.loc[100_000, "mean_abs_error"]
        # Expected ratio is sqrt(100) = 10.
        assert err_large < err_small / 3.0

    def test_scaled_error_roughly_constant(self):
        """mean |error| * sqrt(N) ~ sqrt(2/pi) * sqrt(2/9) ~ 0.376 at every N."""
        table = convergence_study(sample_sizes=[1_000, 10_000, 100_000],
                                  num_trials=20, seed=2)
        assert ((table["scaled_error"] > 0.15) & (table["scaled_error"] < 0.65)).all()

    def test_standard_error_value(self):
        assert_allclose(standard_error(900), np.sqrt(2.0 / 9.0) / 30.0)
        assert standard_error(100, p=0.5) == pytest.approx(0.05)


# =============================================================================
# Test: Convergence study table
# =============================================================================

class TestConvergenceStudy:
    """Shape, reproducibility and validation of the convergence table."""

    def test_columns_and_index(self):
        table = convergence_study(sample_sizes=[100, 1000], num_trials=5, seed=0)
        assert isinstance(table, pd.DataFrame)
        assert list(table.index) == [100, 1000]
        for col in ["trials", "mean", "std", "mean_abs_error", "standard_error",
                    "scaled_error", "band_low", "band_high", "within_band"]:
            assert col in table.columns

    def test_reproducible_for_fixed_seed(self):
        a = convergence_study(sample_sizes=[500, 5000], num_trials=4, seed=11)
        b = convergence_study(sample_sizes=[500, 5000], num_trials=4, seed=11)
        pd.testing.assert_frame_equal(a, b)

    def test_band_brackets_true_value(self):
        table = convergence_study(sample_sizes=[10_000], num_trials=20, seed=5)
        row = table.loc[10_000]
        assert row["band_low"] < TRUE_INTEGRAL < row["band_high"]
        assert row["within_band"] >= 0.8

    def test_iterative_method_matches_vectorized(self):
        loop = convergence_study(sample_sizes=[200], num_trials=3, seed=9,
                                 method="iterative")
        vec = convergence_study(sample_sizes=[200], num_trials=3, seed=9,
                                method="vectorized")
        pd.testing.assert_frame_equal(loop, vec)

    def test_unknown_method(self):
        with pytest.raises(InvalidArgumentError, match="Unknown method"):
            convergence_study(sample_sizes=[100], method="quadrature")

    def test_empty_sample_sizes(self):
        with pytest.raises(InvalidArgumentError):
            convergence_study(sample_sizes=[])


# =============================================================================
# Test: Mean-value estimator
# =============================================================================

class TestMeanValue:
    """Crude Monte Carlo has variance 4/45 per sample for x^2."""

    def test_close_to_one_third(self, seed):
        n = 200_000
        estimate = estimate_mean_value(n, np.random.default_rng(seed))
        assert abs(estimate - TRUE_INTEGRAL) < 5.0 * np.sqrt(4.0 / 45.0 / n)

    def test_batch_size_does_not_change_result(self, seed):
        a = estimate_mean_value(1000, np.random.default_rng(seed), batch_size=1000)
        b = estimate_mean_value(1000, np.random.default_rng(seed), batch_size=37)
        assert_allclose(a, b, rtol=1e-12)


# =============================================================================
# Test: Partitioned estimator
# =============================================================================

class TestParallel:
    """Partitioned execution is reproducible and sums independent streams."""

    def test_partition_sizes(self):
        sizes = partition_sizes(10, 4)
        assert sizes == [3, 3, 2, 2]
        assert sum(partition_sizes(1_000_003, 7)) == 1_000_003

    def test_sequential_reproducible(self):
        assert (estimate_parallel(10_000, num_workers=1, seed=4)
                == estimate_parallel(10_000, num_workers=1, seed=4))

    def test_matches_manual_partition_sum(self):
        n, workers, seed = 10_000, 2, 8
        children = np.random.SeedSequence(seed).spawn(workers)
        expected = sum(
            count_hits_vectorized(size, np.random.default_rng(child))
            for size, child in zip(partition_sizes(n, workers), children)
        ) / n
        assert estimate_parallel(n, num_workers=workers, seed=seed) == expected

    def test_pool_close_to_one_third(self):
        n = 400_000
        estimate = estimate_parallel(n, num_workers=2, seed=6)
        assert abs(estimate - TRUE_INTEGRAL) < 5.0 * standard_error(n)

    def test_workers_clamped_to_sample_count(self, caplog):
        estimate = estimate_parallel(3, num_workers=8, seed=0)
        assert estimate in (0.0, 1 / 3, 2 / 3, 1.0)
        assert "clamping" in caplog.text
