"""
Block scaling of interface vectors.

In parallel coupling the interface vector stacks two physical quantities of
very different magnitude (e.g. solid displacement followed by fluid
traction). Dividing each block by the norm of a reference output brings both
to order one before the least-squares model is built.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from fsi_coupling.utils.exceptions import DimensionMismatchError
from fsi_coupling.utils.fsi_logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

# Factors below this magnitude are replaced by one
SCALING_FLOOR = 1.0e-13


class ScalingPolicy:
    """
    Per-block normalisation factors for a two-block interface vector.

    Rows ``[0, size_var0)`` belong to block 0 and the remaining ``size_var1``
    rows to block 1. ``apply_to`` divides by the factors (enter scaled space),
    ``remove_from`` multiplies (leave it). A disabled policy is the identity.

    Args:
        size_var0: Length of block 0
        size_var1: Length of block 1
        enabled: Whether scaling is active
        threshold_time_index: Factors are recomputed only while the current
            time index is at or before this value
    """

    def __init__(
        self,
        size_var0: int = 0,
        size_var1: int = 0,
        enabled: bool = False,
        threshold_time_index: int = 0,
    ) -> None:
        self.size_var0 = size_var0
        self.size_var1 = size_var1
        self.enabled = enabled
        self.threshold_time_index = threshold_time_index
        self.factors = np.ones(2)

    @property
    def dimension(self) -> int:
        return self.size_var0 + self.size_var1

    def check_dimension(self, length: int, array_name: str = "vector") -> None:
        """Raise if ``length`` disagrees with the recorded block sizes."""
        if self.enabled and length != self.dimension:
            raise DimensionMismatchError(
                array_name=f"{array_name} (block sizes)",
                provided_shape=(length,),
                expected_shape=(self.dimension,),
                component="ScalingPolicy",
                context=f"size_var0={self.size_var0}, size_var1={self.size_var1}",
            )

    def compute_factors(self, reference_output: NDArray, time_index: int = 0) -> bool:
        """
        Recompute the factors from the block norms of ``reference_output``.

        Returns:
            True when the factors were recomputed. Any approximate Jacobian
            built with the old factors is then meaningless and must be
            invalidated by the caller.
        """
        if not self.enabled or time_index > self.threshold_time_index:
            return False

        output = np.asarray(reference_output, dtype=float)
        self.check_dimension(output.shape[0], "reference output")

        factors = np.array(
            [
                np.linalg.norm(output[: self.size_var0]),
                np.linalg.norm(output[self.size_var0 :]),
            ]
        )
        factors[np.abs(factors) < SCALING_FLOOR] = 1.0
        self.factors = factors

        logger.info(
            f"Parallel coupling of fluid and solid solvers with scaling factors "
            f"{self.factors[0]:.6e} and {self.factors[1]:.6e}"
        )
        return True

    def apply_to(self, array: NDArray) -> NDArray:
        """Return a copy of a vector or matrix (rows = interface) in scaled space."""
        return self._rescale(array, divide=True)

    def remove_from(self, array: NDArray) -> NDArray:
        """Return a copy of a vector or matrix mapped back from scaled space."""
        return self._rescale(array, divide=False)

    def _rescale(self, array: NDArray, divide: bool) -> NDArray:
        result = np.array(array, dtype=float, copy=True)
        if not self.enabled:
            return result

        self.check_dimension(result.shape[0])
        # Column vector of per-row factors broadcasts over matrix columns
        row_factors = np.repeat(self.factors, [self.size_var0, self.size_var1])
        if result.ndim > 1:
            row_factors = row_factors.reshape(-1, *([1] * (result.ndim - 1)))

        if divide:
            result /= row_factors
        else:
            result *= row_factors
        return result

    def __repr__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return (
            f"ScalingPolicy({state}, blocks=({self.size_var0}, {self.size_var1}), "
            f"factors=[{self.factors[0]:.3e}, {self.factors[1]:.3e}])"
        )
