"""
Interface post-processing for partitioned coupling.

The accelerator drives the fixed-point loop; PostProcessing holds the
history, scaling and lifecycle shared by every update rule.
"""

from __future__ import annotations

from .anderson_accelerator import (
    AndersonAccelerator,
    create_anderson_accelerator,
    create_fixed_relaxation_accelerator,
)
from .post_processing import PostProcessing
from .update_rules import AndersonUpdateRule, CouplingUpdate, FixedRelaxationRule, UpdateRule

__all__ = [
    "AndersonAccelerator",
    "AndersonUpdateRule",
    "CouplingUpdate",
    "FixedRelaxationRule",
    "PostProcessing",
    "UpdateRule",
    "create_anderson_accelerator",
    "create_fixed_relaxation_accelerator",
]
