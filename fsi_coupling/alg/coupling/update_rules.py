"""
Update rules turning the current residual into an interface correction.

The rules are strategies plugged into the accelerator loop; they share the
history and scaling held by :class:`PostProcessing` instead of inheriting
from a common base class.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from fsi_coupling.utils.fsi_logging import get_logger
from fsi_coupling.utils.numerical.linear_solve_kernel import LinearSolveKernel

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from .post_processing import PostProcessing

logger = get_logger(__name__)


@dataclass
class CouplingUpdate:
    """
    Correction produced by an update rule.

    Attributes:
        dx: Correction in physical (unscaled) units
        columns: History columns used (0 for relaxation steps)
        mode: "relaxation", "jacobian_reuse" or "quasi_newton"
        jacobian: Approximate Jacobian built by this step, if any
    """

    dx: NDArray[np.floating]
    columns: int
    mode: str
    jacobian: NDArray[np.floating] | None = None


class UpdateRule(Protocol):
    """Protocol for correction strategies."""

    def compute_update(
        self,
        post: PostProcessing,
        R: NDArray[np.floating],
        yk: NDArray[np.floating],
    ) -> CouplingUpdate:
        """Correction for scaled residual ``R`` and scaled target ``yk``."""
        ...


class FixedRelaxationRule:
    """
    Constant under-relaxation ``dx = omega (R - y)``.

    Args:
        relaxation: Relaxation factor omega
    """

    def __init__(self, relaxation: float) -> None:
        self.relaxation = relaxation

    def compute_update(self, post: PostProcessing, R: NDArray, yk: NDArray) -> CouplingUpdate:
        logger.info(f"Fixed relaxation post processing with factor {self.relaxation}")
        dx = LinearSolveKernel.relaxation_step(R, yk, self.relaxation)
        return CouplingUpdate(dx=post.scaling.remove_from(dx), columns=0, mode="relaxation")


class AndersonUpdateRule:
    """
    Anderson mixing / IQN-ILS correction from the coupling history.

    Falls back to relaxation (or to a cached Jacobian) while no history
    columns are available.

    Args:
        kernel: Truncated-SVD kernel
        initial_relaxation: Relaxation factor of the start-up step
    """

    def __init__(self, kernel: LinearSolveKernel, initial_relaxation: float) -> None:
        self.kernel = kernel
        self.initial_relaxation = initial_relaxation

    def compute_update(self, post: PostProcessing, R: NDArray, yk: NDArray) -> CouplingUpdate:
        dimension = R.shape[0]
        n_cols = post.available_columns(dimension)

        jacobian_prev = post.jacobian.get(dimension) if self.kernel.update_jacobian else None

        if n_cols == 0:
            if jacobian_prev is not None:
                logger.info("Anderson mixing method: reuse Jacobian of previous time step or optimization")
                mode = "jacobian_reuse"
            else:
                logger.info(f"Fixed relaxation post processing with factor {self.initial_relaxation}")
                mode = "relaxation"
            dx = self.kernel.relaxation_step(R, yk, self.initial_relaxation, jacobian_prev)
            return CouplingUpdate(dx=post.scaling.remove_from(dx), columns=0, mode=mode)

        logger.info(f"Anderson mixing method: post processing with {n_cols} cols for the Jacobian")
        if jacobian_prev is not None:
            logger.info("Anderson mixing method: reuse Jacobian of previous time step or optimization")

        V, W = post.history.difference_matrices(n_cols)
        V = post.scaling.apply_to(V)
        W = post.scaling.apply_to(W)

        solution = self.kernel.solve(V, W, R, yk, jacobian_prev)
        if solution.rank < n_cols:
            logger.debug(f"Truncated {n_cols - solution.rank} of {n_cols} singular values")

        return CouplingUpdate(
            dx=post.scaling.remove_from(solution.dx),
            columns=n_cols,
            mode="quasi_newton",
            jacobian=solution.jacobian,
        )
