"""
Truncated-SVD least-squares kernel for interface quasi-Newton updates.

Given residual differences V and the matching solution differences W, the
kernel computes the correction of an IQN-ILS / Anderson mixing step:

- Jacobian update mode (explicit inverse Jacobian approximation)::

      J  = (V + W) V^+ - I             (no previous Jacobian)
      J  = J_prev + (W - J_prev V) V^+  (previous Jacobian of matching size)
      dx = J (y - R)

- Jacobian-free mode (least-squares coefficients only)::

      c  = V^+ (y - R)
      dx = beta (R - y) + W c + beta V c

V^+ is the pseudoinverse from a thin SVD in which every singular value at or
below the singularity limit is discarded (hard truncation, no regularisation).

References:
- Degroote, J., Bathe, K.-J., & Vierendeels, J. (2009). Performance of a new
  partitioned procedure versus a monolithic procedure in fluid-structure
  interaction. Computers & Structures, 87(11-12), 793-801.
- Walker, H. F., & Ni, P. (2011). Anderson acceleration for fixed-point
  iterations. SIAM Journal on Numerical Analysis, 49(4), 1715-1735.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import scipy.linalg

from fsi_coupling.utils.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray


def truncated_inverse_singular_values(singular_values: NDArray, singularity_limit: float) -> NDArray:
    """
    Invert singular values, mapping every value at or below the limit to zero.

    Args:
        singular_values: Singular values of V (any order)
        singularity_limit: Truncation threshold

    Returns:
        Array of the same shape holding ``1/s`` where ``s > singularity_limit``
        and exactly ``0`` elsewhere
    """
    s = np.asarray(singular_values, dtype=float)
    inverse = np.zeros_like(s)
    keep = s > singularity_limit
    inverse[keep] = 1.0 / s[keep]
    return inverse


def thin_svd(V: NDArray) -> tuple[NDArray, NDArray, NDArray]:
    """Thin SVD ``V = U diag(s) Vh`` of an (interface x columns) matrix."""
    U, s, Vh = scipy.linalg.svd(V, full_matrices=False, lapack_driver="gesvd")
    return U, s, Vh


def truncated_pseudoinverse(V: NDArray, singularity_limit: float) -> NDArray:
    """
    Pseudoinverse ``Vmat diag(s^-1) U^T`` with truncated singular values.

    Modes whose singular value does not exceed ``singularity_limit`` contribute
    nothing to the result.
    """
    U, s, Vh = thin_svd(V)
    s_inv = truncated_inverse_singular_values(s, singularity_limit)
    return (Vh.T * s_inv) @ U.T


class ApproximateJacobian:
    """
    Optional approximate inverse Jacobian carried across coupling calls.

    The matrix lives in scaled space, so it is invalidated whenever the
    scaling factors change. A stored matrix whose size no longer matches the
    residual is treated as absent and dropped.
    """

    def __init__(self) -> None:
        self._matrix: NDArray | None = None

    @property
    def matrix(self) -> NDArray | None:
        return self._matrix

    def is_valid_for(self, dimension: int) -> bool:
        return self._matrix is not None and self._matrix.shape == (dimension, dimension)

    def get(self, dimension: int) -> NDArray | None:
        """Return the cached matrix if it matches ``dimension``, else invalidate it."""
        if self._matrix is None:
            return None
        if not self.is_valid_for(dimension):
            self.invalidate()
            return None
        return self._matrix

    def store(self, matrix: NDArray) -> None:
        matrix = np.asarray(matrix, dtype=float)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise DimensionMismatchError(
                array_name="approximate Jacobian",
                provided_shape=matrix.shape,
                expected_shape=(matrix.shape[0], matrix.shape[0]),
                component="ApproximateJacobian",
            )
        self._matrix = matrix.copy()

    def invalidate(self) -> None:
        self._matrix = None

    def __bool__(self) -> bool:
        return self._matrix is not None


@dataclass
class KernelSolution:
    """Correction in scaled space plus diagnostics of the solve."""

    dx: NDArray
    jacobian: NDArray | None
    singular_values: NDArray
    rank: int


class LinearSolveKernel:
    """
    Quasi-Newton correction from difference matrices.

    Args:
        singularity_limit: Singular values at or below this are discarded
        beta: Relaxation weight of the Jacobian-free update
        update_jacobian: Use the explicit Jacobian update formula
    """

    def __init__(self, singularity_limit: float, beta: float, update_jacobian: bool = False) -> None:
        self.singularity_limit = singularity_limit
        self.beta = beta
        self.update_jacobian = update_jacobian

    def solve(
        self,
        V: NDArray,
        W: NDArray,
        R: NDArray,
        yk: NDArray,
        jacobian_prev: NDArray | None = None,
    ) -> KernelSolution:
        """
        Compute the correction for residual ``R`` and target ``yk``.

        All inputs must already be in scaled space; the returned correction is
        too.

        Args:
            V: Residual differences, one column per history pair
            W: Solution differences, same column order as V
            R: Current residual
            yk: Current target
            jacobian_prev: Previous approximate Jacobian (Jacobian update mode)

        Returns:
            KernelSolution with ``dx`` and, in Jacobian update mode, the new ``J``
        """
        if V.shape != W.shape:
            raise DimensionMismatchError(
                array_name="W",
                provided_shape=W.shape,
                expected_shape=V.shape,
                component="LinearSolveKernel",
            )

        U, s, Vh = thin_svd(V)
        s_inv = truncated_inverse_singular_values(s, self.singularity_limit)
        rank = int(np.count_nonzero(s_inv))

        if self.update_jacobian:
            V_inverse = (Vh.T * s_inv) @ U.T
            n = V.shape[0]

            if jacobian_prev is not None and jacobian_prev.shape == (n, n):
                J = jacobian_prev + (W - jacobian_prev @ V) @ V_inverse
            else:
                J = (V + W) @ V_inverse - np.eye(n)

            return KernelSolution(dx=J @ (yk - R), jacobian=J, singular_values=s, rank=rank)

        c = Vh.T @ (s_inv * (U.T @ (yk - R)))
        dx = self.beta * (R - yk) + W @ c + self.beta * (V @ c)
        return KernelSolution(dx=dx, jacobian=None, singular_values=s, rank=rank)

    @staticmethod
    def relaxation_step(
        R: NDArray,
        yk: NDArray,
        relaxation: float,
        jacobian_prev: NDArray | None = None,
    ) -> NDArray:
        """
        Correction used when no history columns are available.

        ``jacobian_prev @ (yk - R)`` when a matching previous Jacobian is given,
        ``relaxation * (R - yk)`` otherwise.
        """
        if jacobian_prev is not None and jacobian_prev.shape == (R.shape[0], R.shape[0]):
            return jacobian_prev @ (yk - R)
        return relaxation * (R - yk)
