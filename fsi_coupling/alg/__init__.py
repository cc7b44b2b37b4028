"""
Algorithms for partitioned coupling.

- coupling: interface post-processing (Anderson mixing, fixed relaxation)
"""

from __future__ import annotations

from . import coupling

__all__ = ["coupling"]
