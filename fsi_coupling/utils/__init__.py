"""
Utilities for fsi_coupling.

Organization:
- fsi_logging/: logging configuration and helpers
- numerical/: scaling and the truncated-SVD kernel
- history/: coupling history storage
- convergence/: termination criteria and retention rule

Only the dependency-free pieces are imported here; subpackages are imported
explicitly where they are needed.
"""

from __future__ import annotations

from .acceleration_result import AccelerationResult, AccelerationState
from .exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    EvaluationFailure,
    FSICouplingError,
    StageLifecycleError,
)

__all__ = [
    "AccelerationResult",
    "AccelerationState",
    "ConfigurationError",
    "DimensionMismatchError",
    "EvaluationFailure",
    "FSICouplingError",
    "StageLifecycleError",
]
