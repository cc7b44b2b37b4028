"""
Result object returned by coupling accelerators.

Replaces a bare success flag with the convergence record of the call while
still behaving like the flag in boolean context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AccelerationState(Enum):
    """States of one accelerate call; CONVERGED and EXHAUSTED are terminal."""

    INIT = "init"
    EVALUATING = "evaluating"
    ITERATING = "iterating"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (AccelerationState.CONVERGED, AccelerationState.EXHAUSTED)


@dataclass
class AccelerationResult:
    """
    Outcome of one accelerate call.

    Attributes:
        converged: Whether a convergence criterion was met
        state: Terminal state (CONVERGED or EXHAUSTED)
        iterations: Loop iterations performed (the initial evaluation excluded)
        evaluations: Evaluator calls made
        residual_norms: Residual norm after every evaluation
        columns_used: History columns per loop iteration (0 on relaxation steps)
        criterion: "residual" or "sequence"
        execution_time: Wall time of the call in seconds
        metadata: Additional solver-specific information
    """

    converged: bool
    state: AccelerationState
    iterations: int
    evaluations: int
    residual_norms: list[float] = field(default_factory=list)
    columns_used: list[int] = field(default_factory=list)
    criterion: str = "residual"
    execution_time: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.state.is_terminal:
            raise ValueError(f"Result state must be terminal, got {self.state}")
        if self.converged != (self.state is AccelerationState.CONVERGED):
            raise ValueError("converged flag and state disagree")
        if len(self.residual_norms) != self.evaluations:
            raise ValueError(
                f"Expected {self.evaluations} residual norms, got {len(self.residual_norms)}"
            )

    def __bool__(self) -> bool:
        return self.converged

    @property
    def final_residual(self) -> float:
        return self.residual_norms[-1] if self.residual_norms else float("inf")

    @property
    def max_columns_used(self) -> int:
        return max(self.columns_used, default=0)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "converged": self.converged,
            "state": self.state.value,
            "iterations": self.iterations,
            "evaluations": self.evaluations,
            "residual_norms": list(self.residual_norms),
            "columns_used": list(self.columns_used),
            "criterion": self.criterion,
            "execution_time": self.execution_time,
            "final_residual": self.final_residual,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        status = "SUCCESS:" if self.converged else "WARNING:"
        time_str = f", {self.execution_time:.3f}s" if self.execution_time else ""
        return (
            f"AccelerationResult({status} {self.state.value} after {self.iterations} iters, "
            f"residual={self.final_residual:.2e}{time_str})"
        )
