"""
Logging utilities for fsi_coupling.

Usage:
    >>> from fsi_coupling.utils.fsi_logging import get_logger, configure_logging
    >>> logger = get_logger(__name__)
    >>> configure_logging(level="DEBUG", log_file="coupling.log")
    >>> logger.info("Starting coupling iterations...")
"""

from __future__ import annotations

from .logger import (
    LOG_REGISTRY,
    CouplingLogRegistry,
    LoggedOperation,
    build_formatter,
    configure_development_logging,
    configure_logging,
    get_logger,
    log_convergence_analysis,
    log_solver_configuration,
)

__all__ = [
    "LOG_REGISTRY",
    "CouplingLogRegistry",
    "LoggedOperation",
    "build_formatter",
    "configure_development_logging",
    "configure_logging",
    "get_logger",
    "log_convergence_analysis",
    "log_solver_configuration",
]
