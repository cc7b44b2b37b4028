#!/usr/bin/env python3
"""
Anderson acceleration on linear fixed-point problems.

Compares interface quasi-Newton coupling against fixed relaxation and checks
the forced variant and block scaling end to end.
"""

import numpy as np
import pytest

from fsi_coupling.alg.coupling import AndersonAccelerator, create_fixed_relaxation_accelerator
from fsi_coupling.config import ConvergenceSettings
from fsi_coupling.core import LinearFixedPointEvaluator


def run_single_solve(accelerator, x0):
    xk = np.zeros_like(x0)
    with accelerator.stage(0):
        result = accelerator.accelerate(x0, xk)
    return result, xk


class TestLinearScenario:
    """evaluate(x) = (A x, A x - x) for a 4x4 contraction."""

    def test_anderson_converges_within_five_iterations(self, linear_evaluator, x0, tight_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator,
            convergence=tight_convergence,
            max_used_iterations=4,
            update_jacobian=False,
        )
        result, xk = run_single_solve(accelerator, x0)

        assert result.converged
        assert result.iterations <= 5
        assert result.final_residual <= 1e-10
        np.testing.assert_allclose(xk, np.zeros(4), atol=1e-9)

    @pytest.mark.parametrize("beta", [0.1, 0.5, 1.0])
    def test_five_iteration_bound_holds_across_beta(self, linear_evaluator, x0, tight_convergence, beta):
        """Difference columns stay above the singularity limit for beta of order 0.1 to 1."""
        accelerator = AndersonAccelerator(
            linear_evaluator,
            convergence=tight_convergence,
            max_used_iterations=4,
            beta=beta,
        )
        result, xk = run_single_solve(accelerator, x0)

        assert accelerator.config.singularity_limit == 1e-11
        assert result.converged
        assert result.iterations <= 5
        np.testing.assert_allclose(xk, np.zeros(4), atol=1e-9)

    def test_fixed_relaxation_needs_more_iterations(self, linear_evaluator, contraction_matrix, x0, tight_convergence):
        anderson = AndersonAccelerator(linear_evaluator, convergence=tight_convergence, max_used_iterations=4)
        anderson_result, _ = run_single_solve(anderson, x0)

        relaxed = AndersonAccelerator(
            LinearFixedPointEvaluator(contraction_matrix),
            convergence=tight_convergence,
            max_used_iterations=0,
            initial_relaxation=0.5,
            max_iterations=500,
        )
        relaxed_result, xk = run_single_solve(relaxed, x0)

        assert relaxed_result.converged
        assert relaxed_result.iterations > anderson_result.iterations
        assert relaxed_result.max_columns_used == 0
        np.testing.assert_allclose(xk, np.zeros(4), atol=1e-9)

    def test_fixed_relaxation_rule_matches_zero_columns(self, contraction_matrix, x0, tight_convergence):
        """The dedicated relaxation rule and a zero-column Anderson run take the same steps."""
        via_rule = create_fixed_relaxation_accelerator(
            LinearFixedPointEvaluator(contraction_matrix),
            relaxation=0.5,
            max_iterations=500,
            convergence=tight_convergence,
        )
        via_cap = AndersonAccelerator(
            LinearFixedPointEvaluator(contraction_matrix),
            convergence=tight_convergence,
            max_used_iterations=0,
            initial_relaxation=0.5,
            max_iterations=500,
        )

        result_rule, xk_rule = run_single_solve(via_rule, x0)
        result_cap, xk_cap = run_single_solve(via_cap, x0)

        assert result_rule.iterations == result_cap.iterations
        np.testing.assert_allclose(xk_rule, xk_cap)

    def test_column_cap_limits_history(self, linear_evaluator, x0, tight_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=tight_convergence, max_used_iterations=2, max_iterations=10
        )
        result, _ = run_single_solve(accelerator, x0)

        assert result.columns_used[:3] == [0, 1, 2]
        assert result.max_columns_used == 2

    def test_jacobian_update_mode_converges(self, linear_evaluator, x0, tight_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=tight_convergence, max_used_iterations=4, update_jacobian=True
        )
        result, xk = run_single_solve(accelerator, x0)

        assert result.converged
        np.testing.assert_allclose(xk, np.zeros(4), atol=1e-9)

    def test_scalar_map_solved_by_first_secant_step(self, x0):
        """With A = a I every difference is parallel, so one column is exact."""
        evaluator = LinearFixedPointEvaluator(0.5 * np.eye(4))
        accelerator = AndersonAccelerator(
            evaluator, convergence=ConvergenceSettings(tolerance=1e-10), max_used_iterations=4
        )
        result, xk = run_single_solve(accelerator, x0)

        assert result.converged
        assert result.iterations == 2
        np.testing.assert_allclose(xk, np.zeros(4), atol=1e-9)


class TestForcedVariant:
    def test_solves_offset_problem(self, affine_evaluator, contraction_matrix, x0):
        y = np.array([0.2, 0.0, -0.1, 0.3])
        accelerator = AndersonAccelerator(
            affine_evaluator, convergence=ConvergenceSettings(tolerance=1e-10), max_used_iterations=4
        )
        xk = np.zeros(4)

        with accelerator.stage(0):
            result = accelerator.accelerate_with_offset(y, x0, xk)

        expected = np.linalg.solve(np.eye(4) - contraction_matrix, affine_evaluator.b - y)
        assert result.converged
        assert result.criterion == "sequence"
        np.testing.assert_allclose(xk, expected, atol=1e-8)

    def test_zero_offset_matches_unforced_fixed_point(self, affine_evaluator, x0):
        accelerator = AndersonAccelerator(
            affine_evaluator, convergence=ConvergenceSettings(tolerance=1e-10), max_used_iterations=4
        )
        xk = np.zeros(4)

        with accelerator.stage(0):
            accelerator.accelerate_with_offset(np.zeros(4), x0, xk)

        np.testing.assert_allclose(xk, affine_evaluator.fixed_point, atol=1e-8)

    def test_second_forced_window_is_discarded(self, affine_evaluator, x0):
        accelerator = AndersonAccelerator(
            affine_evaluator, convergence=ConvergenceSettings(tolerance=1e-10), max_used_iterations=4
        )

        with accelerator.stage(0):
            first = accelerator.accelerate_with_offset(np.zeros(4), x0, np.zeros(4))
            assert len(accelerator.history.stage_history) == 1
            second = accelerator.accelerate_with_offset(np.full(4, 0.1), x0, np.zeros(4))

        assert first.converged and second.converged
        assert len(accelerator.history.stage_history) == 1
        assert len(accelerator.history.stage_history[0]) == first.evaluations


class TestScaling:
    @pytest.fixture
    def disparate_evaluator(self, contraction_matrix):
        """Similar to the base contraction, with block 0 a thousand times larger."""
        D = np.diag([1e3, 1e3, 1.0, 1.0])
        A = D @ contraction_matrix @ np.linalg.inv(D)
        b = D @ np.array([1.0, -1.0, 0.5, 2.0])
        return LinearFixedPointEvaluator(A, b=b, parallel=True, block_sizes=(2, 2))

    def test_scaled_coupling_converges(self, disparate_evaluator):
        accelerator = AndersonAccelerator(
            disparate_evaluator,
            convergence=ConvergenceSettings(tolerance=1e-6),
            max_used_iterations=4,
            scaling=True,
        )
        result, xk = run_single_solve(accelerator, np.zeros(4))

        assert result.converged
        _, residual = disparate_evaluator.evaluate(xk)
        assert np.linalg.norm(residual) <= 1e-6
        assert not np.allclose(accelerator.post.scaling.factors, 1.0)

    def test_scaling_factors_frozen_after_threshold(self, disparate_evaluator):
        accelerator = AndersonAccelerator(
            disparate_evaluator,
            convergence=ConvergenceSettings(tolerance=1e-6),
            max_used_iterations=4,
            scaling=True,
        )
        run_single_solve(accelerator, np.zeros(4))
        factors = accelerator.post.scaling.factors.copy()
        accelerator.finalize_time_step()

        run_single_solve(accelerator, np.ones(4))
        np.testing.assert_array_equal(accelerator.post.scaling.factors, factors)
