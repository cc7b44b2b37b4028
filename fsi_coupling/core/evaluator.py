"""
Evaluator capability consumed by coupling accelerators.

An evaluator runs the partitioned physics solves for one interface vector
and returns the resulting output together with the coupling residual. It is
a blocking call: any parallel work inside it must be finished and globally
consistent when it returns. Solver failures are reported by raising
:class:`~fsi_coupling.utils.exceptions.EvaluationFailure`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

from fsi_coupling.utils.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray


@runtime_checkable
class Evaluator(Protocol):
    """
    Protocol for interface evaluators.

    ``evaluate(x)`` returns ``(output, residual)`` with ``residual = output - x``
    for a plain fixed-point map. Evaluators used with block scaling must also
    expose ``parallel = True`` (both blocks are produced in the same
    evaluation) and may expose ``block_sizes = (size_var0, size_var1)``.
    """

    def evaluate(self, x: NDArray[np.floating]) -> tuple[NDArray[np.floating], NDArray[np.floating]]: ...


class CallableEvaluator:
    """
    Adapt a fixed-point map ``g(x) -> output`` to the Evaluator protocol.

    Args:
        func: Fixed-point map
        parallel: Whether both interface blocks are computed in one evaluation
        block_sizes: Optional (size_var0, size_var1) used by scaling
    """

    def __init__(
        self,
        func: Callable[[NDArray], NDArray],
        parallel: bool = False,
        block_sizes: tuple[int, int] | None = None,
    ) -> None:
        self.func = func
        self.parallel = parallel
        self.block_sizes = block_sizes
        self.n_evaluations = 0

    def evaluate(self, x: NDArray) -> tuple[NDArray, NDArray]:
        x = np.asarray(x, dtype=float)
        output = np.asarray(self.func(x.copy()), dtype=float)
        if output.shape != x.shape:
            raise DimensionMismatchError(
                array_name="evaluator output",
                provided_shape=output.shape,
                expected_shape=x.shape,
                component=type(self).__name__,
            )
        self.n_evaluations += 1
        return output, output - x


class LinearFixedPointEvaluator:
    """
    Affine fixed-point map ``g(x) = A x + b``.

    With a contraction ``A`` (spectral radius below one) the fixed point is
    ``(I - A)^{-1} b``. Inputs are recorded, which makes the evaluator handy
    for benchmarks and tests.

    Args:
        A: Square iteration matrix
        b: Offset vector (zeros when None)
        parallel: Value of the ``parallel`` attribute
        block_sizes: Optional (size_var0, size_var1)
    """

    def __init__(
        self,
        A: NDArray,
        b: NDArray | None = None,
        parallel: bool = False,
        block_sizes: tuple[int, int] | None = None,
    ) -> None:
        self.A = np.asarray(A, dtype=float)
        if self.A.ndim != 2 or self.A.shape[0] != self.A.shape[1]:
            raise DimensionMismatchError(
                array_name="A",
                provided_shape=self.A.shape,
                expected_shape=(self.A.shape[0], self.A.shape[0]),
                component=type(self).__name__,
            )
        n = self.A.shape[0]
        self.b = np.zeros(n) if b is None else np.asarray(b, dtype=float)
        self.parallel = parallel
        self.block_sizes = block_sizes
        self.inputs: list[NDArray] = []

    @property
    def dimension(self) -> int:
        return self.A.shape[0]

    @property
    def n_evaluations(self) -> int:
        return len(self.inputs)

    @property
    def fixed_point(self) -> NDArray:
        return np.linalg.solve(np.eye(self.dimension) - self.A, self.b)

    @property
    def spectral_radius(self) -> float:
        return float(np.max(np.abs(np.linalg.eigvals(self.A))))

    def evaluate(self, x: NDArray) -> tuple[NDArray, NDArray]:
        x = np.asarray(x, dtype=float)
        self.inputs.append(x.copy())
        output = self.A @ x + self.b
        return output, output - x

    @classmethod
    def random_contraction(
        cls,
        dimension: int,
        spectral_radius: float = 0.8,
        seed: int | None = None,
        **kwargs,
    ) -> LinearFixedPointEvaluator:
        """Random contraction with the requested spectral radius and a random offset."""
        rng = np.random.default_rng(seed)
        A = rng.standard_normal((dimension, dimension))
        A *= spectral_radius / np.max(np.abs(np.linalg.eigvals(A)))
        b = rng.standard_normal(dimension)
        return cls(A, b, **kwargs)
