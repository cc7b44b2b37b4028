"""
Logging for coupling runs.

Every module takes its logger from :func:`get_logger`. The loggers handed out
are kept in one registry, so a later :func:`configure_logging` call (the CLI
makes one after reading ``LoggingConfig``) reaches loggers that module imports
created earlier. Console records are colored with colorlog; the optional log
file gets the same layout without colors.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from pathlib import Path
from typing import Any

import colorlog

RECORD_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOCATION_SUFFIX = " (%(filename)s:%(lineno)d)"
DATE_FORMAT = "%H:%M:%S"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def build_formatter(colored: bool = True, include_location: bool = False) -> logging.Formatter:
    """Record formatter for the console (``colored``) or the log file."""
    fmt = RECORD_FORMAT + (LOCATION_SUFFIX if include_location else "")
    if colored:
        return colorlog.ColoredFormatter("%(log_color)s" + fmt, datefmt=DATE_FORMAT, log_colors=LEVEL_COLORS)
    return logging.Formatter(fmt, datefmt=DATE_FORMAT)


class CouplingLogRegistry:
    """
    Loggers created through :func:`get_logger`, with their shared settings.

    Args:
        level: Threshold for every registered logger
        include_location: Append ``(file:line)`` to each record
        log_file: Optional file receiving a copy of every record
    """

    def __init__(self, level: int = logging.INFO, include_location: bool = False, log_file: Path | None = None):
        self.level = level
        self.include_location = include_location
        self.log_file = log_file
        self._loggers: dict[str, logging.Logger] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: str) -> bool:
        return name in self._loggers

    def get(self, name: str) -> logging.Logger:
        with self._lock:
            logger = self._loggers.get(name)
            if logger is None:
                logger = logging.getLogger(name)
                self._attach_handlers(logger)
                self._loggers[name] = logger
        return logger

    def configure(self, level: str | int, include_location: bool, log_file: str | Path | None) -> None:
        """Store new settings and rebuild the handlers of every registered logger."""
        with self._lock:
            self.level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
            self.include_location = include_location
            self.log_file = Path(log_file) if log_file is not None else None
            if self.log_file is not None:
                self.log_file.parent.mkdir(parents=True, exist_ok=True)

            for logger in self._loggers.values():
                self._attach_handlers(logger)

    def _attach_handlers(self, logger: logging.Logger) -> None:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            if isinstance(handler, logging.FileHandler):
                handler.close()

        # Bound to the current sys.stdout, which test runners replace
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(build_formatter(colored=True, include_location=self.include_location))
        logger.addHandler(console)

        if self.log_file is not None:
            file_handler = logging.FileHandler(self.log_file)
            file_handler.setFormatter(build_formatter(colored=False, include_location=self.include_location))
            logger.addHandler(file_handler)

        for handler in logger.handlers:
            handler.setLevel(self.level)
        logger.setLevel(self.level)
        logger.propagate = False


LOG_REGISTRY = CouplingLogRegistry()


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` (usually ``__name__``), registered for reconfiguration."""
    return LOG_REGISTRY.get(name)


def configure_logging(
    level: str | int = "INFO",
    include_location: bool = False,
    log_file: str | Path | None = None,
) -> None:
    """
    Apply logging settings to all coupling loggers, present and future.

    Args:
        level: DEBUG, INFO, WARNING or ERROR (or a numeric level)
        include_location: Append ``(file:line)`` to each record
        log_file: Also write records to this file; parent directories are created
    """
    LOG_REGISTRY.configure(level, include_location, log_file)


def configure_development_logging(include_location: bool = True) -> None:
    """DEBUG level with source locations, console only."""
    configure_logging(level="DEBUG", include_location=include_location)
    get_logger("fsi_coupling.development").debug("Development logging enabled")


def log_solver_configuration(
    logger: logging.Logger,
    solver_name: str,
    config: dict[str, Any],
    problem_info: dict[str, Any] | None = None,
):
    """Log an accelerator configuration, one parameter per line."""
    logger.info(f"=== {solver_name} Configuration ===")

    for key, value in config.items():
        if isinstance(value, int | float | str | bool) or value is None:
            logger.info(f"  {key}: {value}")
        elif isinstance(value, dict):
            logger.info(f"  {key}: {len(value)} parameters")
        else:
            logger.info(f"  {key}: {type(value).__name__}")

    if problem_info:
        logger.info("=== Coupling Interface ===")
        for key, value in problem_info.items():
            logger.info(f"  {key}: {value}")


def log_convergence_analysis(
    logger: logging.Logger,
    residual_norms: list[float],
    iterations: int,
    tolerance: float,
    converged: bool,
):
    """Summarize one accelerate call from its residual norms."""
    logger.info("=== Convergence Analysis ===")
    logger.info(f"  Final status: {'CONVERGED' if converged else 'EXHAUSTED'}")
    logger.info(f"  Iterations: {iterations}")
    logger.info(f"  Target tolerance: {tolerance:.2e}")

    if residual_norms:
        initial, final = residual_norms[0], residual_norms[-1]
        logger.info(f"  Initial residual: {initial:.2e}")
        logger.info(f"  Final residual: {final:.2e}")

        if len(residual_norms) > 1 and final > 0:
            logger.info(f"  Residual reduction: {initial / final:.2e}x")


class LoggedOperation:
    """Context manager logging the start, duration and failure of an operation."""

    def __init__(self, logger: logging.Logger, operation_name: str, log_level: int = logging.INFO):
        self.logger = logger
        self.operation_name = operation_name
        self.log_level = log_level
        self.start_time = 0.0

    def __enter__(self):
        self.logger.log(self.log_level, f"Starting {self.operation_name}")
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.log(self.log_level, f"Completed {self.operation_name} in {duration:.3f}s")
        else:
            self.logger.error(f"Failed {self.operation_name} after {duration:.3f}s: {exc_val}")

        return False
