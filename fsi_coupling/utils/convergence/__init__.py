"""
Convergence checking for coupling iterations.

Usage:
    from fsi_coupling.utils.convergence import CouplingConvergenceChecker
"""

from .convergence_checkers import CouplingConvergenceChecker, compute_norm

__all__ = ["CouplingConvergenceChecker", "compute_norm"]
