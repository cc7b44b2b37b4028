#!/usr/bin/env python3
"""
History and Jacobian reuse across coupling stages and time steps.

The same linear coupling map is solved repeatedly, as happens for a
quasi-steady interface; reused information must make later solves cheaper.
"""

import numpy as np
import pytest

from fsi_coupling.alg.coupling import AndersonAccelerator
from fsi_coupling.config import ConvergenceSettings


@pytest.fixture
def reuse_convergence():
    return ConvergenceSettings(tolerance=1e-8)


def solve_time_step(accelerator, x0, stage_index=0):
    xk = np.zeros_like(x0)
    with accelerator.stage(stage_index):
        result = accelerator.accelerate(x0, xk)
    accelerator.finalize_time_step()
    return result, xk


class TestTimeHistoryReuse:
    def test_reused_columns_solve_next_step_at_once(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=reuse_convergence, max_used_iterations=4, nb_reuse=2
        )

        first, _ = solve_time_step(accelerator, x0)
        second, xk = solve_time_step(accelerator, 2.0 * x0)

        assert first.converged and second.converged
        assert second.columns_used[0] == 4
        assert second.iterations == 1
        np.testing.assert_allclose(xk, np.zeros(4), atol=1e-7)

    def test_without_reuse_history_is_dropped(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=reuse_convergence, max_used_iterations=4, nb_reuse=0
        )

        first, _ = solve_time_step(accelerator, x0)
        second, _ = solve_time_step(accelerator, 2.0 * x0)

        assert second.columns_used[0] == 0
        assert second.iterations > 1
        assert accelerator.time_index == 2

    def test_time_history_bounded_by_nb_reuse(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=reuse_convergence, max_used_iterations=4, nb_reuse=2
        )

        for step in range(4):
            solve_time_step(accelerator, (step + 1.0) * x0)

        assert len(accelerator.history.time_history) == 2

    def test_reuse_starts_at_configured_time_index(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator,
            convergence=reuse_convergence,
            max_used_iterations=4,
            nb_reuse=2,
            reuse_information_starting_from_time_index=1,
        )

        solve_time_step(accelerator, x0)
        assert accelerator.history.time_history == []

        solve_time_step(accelerator, 2.0 * x0)
        assert len(accelerator.history.time_history) == 1


class TestStageHistoryReuse:
    def test_second_stage_uses_first_stage(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=reuse_convergence, max_used_iterations=4, max_stages=2
        )

        xk = np.zeros(4)
        with accelerator.stage(0):
            first = accelerator.accelerate(x0, xk)
        with accelerator.stage(1):
            second = accelerator.accelerate(2.0 * x0, xk)

        assert first.converged and second.converged
        assert second.columns_used[0] == 4
        assert second.iterations == 1
        assert len(accelerator.history.stage_history) == 2

    def test_stage_history_cleared_by_time_step(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=reuse_convergence, max_used_iterations=4, nb_reuse=0
        )

        solve_time_step(accelerator, x0)
        assert not accelerator.history.has_stage_history


class TestJacobianReuse:
    def test_cached_jacobian_gives_exact_first_step(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=reuse_convergence, max_used_iterations=4, update_jacobian=True
        )

        first, _ = solve_time_step(accelerator, x0)
        assert first.converged
        assert accelerator.post.jacobian

        second, xk = solve_time_step(accelerator, 2.0 * x0)
        assert second.columns_used[0] == 0
        assert second.iterations == 1
        np.testing.assert_allclose(xk, np.zeros(4), atol=1e-7)

    def test_no_cache_without_update_mode(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(linear_evaluator, convergence=reuse_convergence, max_used_iterations=4)

        solve_time_step(accelerator, x0)
        assert not accelerator.post.jacobian

    def test_reset_drops_cached_jacobian(self, linear_evaluator, x0, reuse_convergence):
        accelerator = AndersonAccelerator(
            linear_evaluator, convergence=reuse_convergence, max_used_iterations=4, update_jacobian=True
        )
        solve_time_step(accelerator, x0)
        accelerator.reset()

        assert not accelerator.post.jacobian
        assert accelerator.time_index == 0
