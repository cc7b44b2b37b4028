"""
Convergence checking for interface coupling iterations.

Two criteria are available and chosen per accelerate call:

- iteration-sequence criterion: the relative change between the evaluator
  output and the previous value of the fixed-point sequence,
  ``||output - previous|| <= tolerance * ||output||``;
- residual criterion: the magnitude of the coupling residual,
  ``||R - y|| <= residual_tolerance``.

The checker also owns the history retention rule applied on convergence.

Usage:
    checker = CouplingConvergenceChecker(ConvergenceSettings(tolerance=1e-6))

    converged, metrics = checker.check(output, residual, y, residual_criterion=True)
    if converged:
        keep = checker.should_retain(True, has_stage_history)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import numpy as np

from fsi_coupling.config.core import ConvergenceSettings

if TYPE_CHECKING:
    from numpy.typing import NDArray

# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def compute_norm(
    diff: NDArray[np.floating],
    method: Literal["l1", "l2", "linf"] = "l2",
) -> float:
    """
    Compute norm of difference array.

    Args:
        diff: Difference array (new - old)
        method: Norm type ('l1', 'l2', 'linf')

    Returns:
        Scalar norm value
    """
    if diff.size == 0:
        return 0.0
    if method == "l1":
        return float(np.sum(np.abs(diff)))
    elif method == "linf":
        return float(np.max(np.abs(diff)))
    else:
        return float(np.sqrt(np.sum(diff**2)))


def _check_divergence(error: float, threshold: float = 1e10) -> tuple[bool, str]:
    """
    Check for divergence conditions.

    Returns:
        Tuple of (is_diverged, status_string)
    """
    if np.isnan(error):
        return True, "DIVERGED_NAN"
    if np.isinf(error):
        return True, "DIVERGED_INF"
    if error > threshold:
        return True, "DIVERGED_THRESHOLD"
    return False, "OK"


# =============================================================================
# COUPLING CONVERGENCE CHECKER
# =============================================================================


class CouplingConvergenceChecker:
    """
    Termination criteria and history retention for coupling iterations.

    Args:
        config: ConvergenceSettings with tolerance settings
    """

    def __init__(self, config: ConvergenceSettings | None = None) -> None:
        self.config = config if config is not None else ConvergenceSettings()

    def check(
        self,
        output: NDArray[np.floating],
        residual: NDArray[np.floating],
        y: NDArray[np.floating],
        residual_criterion: bool,
        evaluations: int = 1,
    ) -> tuple[bool, dict[str, float | str]]:
        """
        Check convergence of one evaluation.

        Args:
            output: Evaluator output
            residual: Coupling residual returned with ``output``
            y: Offset of the forced variant (zeros for the unforced one)
            residual_criterion: Use the residual criterion instead of the
                iteration-sequence criterion
            evaluations: Evaluations made so far in the current call

        Returns:
            (converged, {'residual_norm': float, 'error': float,
                         'criterion': str, 'status': str})
        """
        norm = self.config.norm
        # previous = output + y - residual, hence output - previous = residual - y
        difference = residual - y
        residual_norm = compute_norm(difference, norm)

        error = residual_norm
        if residual_criterion:
            tolerance = self.config.get_residual_tolerance()
            criterion = "residual"
        else:
            output_norm = compute_norm(output, norm)
            if output_norm > 1e-15:
                error = residual_norm / output_norm
            tolerance = self.config.tolerance
            criterion = "sequence"

        metrics: dict[str, float | str] = {
            "residual_norm": residual_norm,
            "error": error,
            "criterion": criterion,
        }

        is_diverged, status = _check_divergence(residual_norm, self.config.divergence_threshold)
        metrics["status"] = status
        if is_diverged:
            return False, metrics

        if evaluations < self.config.min_iterations:
            return False, metrics

        return error <= tolerance, metrics

    @staticmethod
    def should_retain(residual_criterion: bool, has_stage_history: bool) -> bool:
        """
        Decide whether a converged window is kept for later reuse.

        The window is kept when the residual criterion was used, or when no
        stage history exists yet; otherwise it is discarded.
        """
        return residual_criterion or not has_stage_history
