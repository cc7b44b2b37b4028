"""Numerical building blocks: block scaling and the truncated-SVD kernel."""

from .linear_solve_kernel import (
    ApproximateJacobian,
    KernelSolution,
    LinearSolveKernel,
    thin_svd,
    truncated_inverse_singular_values,
    truncated_pseudoinverse,
)
from .scaling import SCALING_FLOOR, ScalingPolicy

__all__ = [
    "SCALING_FLOOR",
    "ApproximateJacobian",
    "KernelSolution",
    "LinearSolveKernel",
    "ScalingPolicy",
    "thin_svd",
    "truncated_inverse_singular_values",
    "truncated_pseudoinverse",
]
