"""Tests for fsi_coupling.core.evaluator."""

from __future__ import annotations

import numpy as np
import pytest

from fsi_coupling.core import CallableEvaluator, Evaluator, LinearFixedPointEvaluator
from fsi_coupling.utils.exceptions import DimensionMismatchError


class TestCallableEvaluator:
    def test_residual_is_output_minus_input(self):
        evaluator = CallableEvaluator(lambda x: 2.0 * x)
        output, residual = evaluator.evaluate(np.array([1.0, 2.0]))

        np.testing.assert_allclose(output, [2.0, 4.0])
        np.testing.assert_allclose(residual, [1.0, 2.0])
        assert evaluator.n_evaluations == 1

    def test_input_is_not_mutated(self):
        def mutating(x):
            x += 1.0
            return x

        x = np.zeros(2)
        CallableEvaluator(mutating).evaluate(x)
        np.testing.assert_array_equal(x, np.zeros(2))

    def test_wrong_output_shape(self):
        with pytest.raises(DimensionMismatchError):
            CallableEvaluator(lambda x: np.zeros(3)).evaluate(np.zeros(2))

    def test_declares_capabilities(self):
        evaluator = CallableEvaluator(lambda x: x, parallel=True, block_sizes=(1, 1))

        assert isinstance(evaluator, Evaluator)
        assert evaluator.parallel
        assert evaluator.block_sizes == (1, 1)


class TestLinearFixedPointEvaluator:
    def test_affine_map(self):
        A = np.array([[0.5, 0.0], [0.0, 0.25]])
        evaluator = LinearFixedPointEvaluator(A, b=np.array([1.0, 1.0]))
        output, residual = evaluator.evaluate(np.zeros(2))

        np.testing.assert_allclose(output, [1.0, 1.0])
        np.testing.assert_allclose(residual, [1.0, 1.0])
        np.testing.assert_allclose(evaluator.fixed_point, [2.0, 4.0 / 3.0])

    def test_records_inputs(self):
        evaluator = LinearFixedPointEvaluator(np.eye(2))
        evaluator.evaluate(np.array([1.0, 2.0]))
        evaluator.evaluate(np.array([3.0, 4.0]))

        assert evaluator.n_evaluations == 2
        np.testing.assert_array_equal(evaluator.inputs[1], [3.0, 4.0])

    def test_rejects_non_square(self):
        with pytest.raises(DimensionMismatchError):
            LinearFixedPointEvaluator(np.ones((2, 3)))

    def test_random_contraction(self):
        evaluator = LinearFixedPointEvaluator.random_contraction(6, spectral_radius=0.7, seed=0)

        assert evaluator.dimension == 6
        assert evaluator.spectral_radius == pytest.approx(0.7)
        output, _ = evaluator.evaluate(evaluator.fixed_point)
        np.testing.assert_allclose(output, evaluator.fixed_point, atol=1e-10)

    def test_random_contraction_is_reproducible(self):
        a = LinearFixedPointEvaluator.random_contraction(3, seed=5)
        b = LinearFixedPointEvaluator.random_contraction(3, seed=5)

        np.testing.assert_array_equal(a.A, b.A)
        np.testing.assert_array_equal(a.b, b.b)
