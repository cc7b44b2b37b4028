"""Tests for fsi_coupling.utils.numerical.scaling."""

from __future__ import annotations

import numpy as np
import pytest

from fsi_coupling.utils.exceptions import DimensionMismatchError
from fsi_coupling.utils.numerical.scaling import SCALING_FLOOR, ScalingPolicy


@pytest.fixture
def policy():
    return ScalingPolicy(size_var0=1, size_var1=1, enabled=True)


class TestComputeFactors:
    def test_block_norms(self, policy):
        assert policy.compute_factors(np.array([100.0, 1.0]))
        np.testing.assert_allclose(policy.factors, [100.0, 1.0])

    def test_scaled_reference_is_unit(self, policy):
        policy.compute_factors(np.array([100.0, 1.0]))
        np.testing.assert_allclose(policy.apply_to(np.array([100.0, 1.0])), [1.0, 1.0])

    def test_multi_entry_blocks_use_two_norm(self):
        policy = ScalingPolicy(size_var0=2, size_var1=1, enabled=True)
        policy.compute_factors(np.array([3.0, 4.0, -2.0]))
        np.testing.assert_allclose(policy.factors, [5.0, 2.0])

    def test_negligible_block_is_floored_to_one(self, policy):
        policy.compute_factors(np.array([0.5 * SCALING_FLOOR, 7.0]))
        np.testing.assert_allclose(policy.factors, [1.0, 7.0])
        assert np.all(policy.factors > 0)

    def test_not_recomputed_after_threshold(self):
        policy = ScalingPolicy(size_var0=1, size_var1=1, enabled=True, threshold_time_index=2)

        assert policy.compute_factors(np.array([10.0, 2.0]), time_index=2)
        assert not policy.compute_factors(np.array([50.0, 50.0]), time_index=3)
        np.testing.assert_allclose(policy.factors, [10.0, 2.0])

    def test_disabled_policy_keeps_unit_factors(self):
        policy = ScalingPolicy(size_var0=1, size_var1=1, enabled=False)

        assert not policy.compute_factors(np.array([100.0, 1.0]))
        np.testing.assert_array_equal(policy.factors, [1.0, 1.0])

    def test_wrong_length_raises(self, policy):
        with pytest.raises(DimensionMismatchError):
            policy.compute_factors(np.array([1.0, 2.0, 3.0]))


class TestApplyRemove:
    def test_round_trip_vector(self):
        rng = np.random.default_rng(3)
        policy = ScalingPolicy(size_var0=3, size_var1=2, enabled=True)
        policy.compute_factors(rng.standard_normal(5) * [1e3, 1e3, 1e3, 1e-2, 1e-2])

        v = rng.standard_normal(5)
        np.testing.assert_allclose(policy.remove_from(policy.apply_to(v)), v, rtol=1e-14)

    def test_matrix_rows_are_scaled(self):
        policy = ScalingPolicy(size_var0=1, size_var1=2, enabled=True)
        policy.factors = np.array([10.0, 0.5])

        M = np.ones((3, 2))
        scaled = policy.apply_to(M)

        np.testing.assert_allclose(scaled, [[0.1, 0.1], [2.0, 2.0], [2.0, 2.0]])
        np.testing.assert_allclose(policy.remove_from(scaled), M)

    def test_inputs_are_not_modified(self, policy):
        policy.factors = np.array([4.0, 2.0])
        v = np.array([8.0, 8.0])
        policy.apply_to(v)

        np.testing.assert_array_equal(v, [8.0, 8.0])

    def test_disabled_is_identity_copy(self):
        policy = ScalingPolicy()
        v = np.array([1.0, 2.0, 3.0])
        result = policy.apply_to(v)

        np.testing.assert_array_equal(result, v)
        assert result is not v

    def test_check_dimension_only_when_enabled(self):
        ScalingPolicy(size_var0=1, size_var1=1).check_dimension(5)

        with pytest.raises(DimensionMismatchError):
            ScalingPolicy(size_var0=1, size_var1=1, enabled=True).check_dimension(5)
