"""
Core coupling configuration classes.

Configurations specify HOW interface iterations are accelerated (relaxation,
history reuse, truncation, convergence), not WHAT is being coupled - the
physics lives behind an evaluator.

Key Principle
-------------
- Evaluator (Python code): fluid and structure solves, interface residual
- CouplingConfig (YAML/Python): algorithmic choices (history, tolerances, logging)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from fsi_coupling.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path


class LoggingConfig(BaseModel):
    """
    Configuration for logging.

    Attributes
    ----------
    level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
        Logging level (default: INFO)
    include_location : bool
        Append file:line to every record (default: False)
    log_file : str | None
        Also write records, uncolored, to this file (default: None)
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    include_location: bool = False
    log_file: str | None = None


class ConvergenceSettings(BaseModel):
    """
    Termination criteria for one accelerate call.

    Attributes
    ----------
    tolerance : float
        Relative tolerance of the iteration-sequence criterion (default: 1e-6)
    residual_tolerance : float | None
        Absolute tolerance of the residual criterion; falls back to
        ``tolerance`` when None
    min_iterations : int
        Evaluations required before convergence may be declared (default: 0)
    norm : Literal["l1", "l2", "linf"]
        Vector norm used by both criteria (default: l2)
    divergence_threshold : float
        Residual size treated as divergence (default: 1e10)
    """

    tolerance: float = Field(default=1e-6, gt=0)
    residual_tolerance: float | None = Field(default=None, gt=0)
    min_iterations: int = Field(default=0, ge=0)
    norm: Literal["l1", "l2", "linf"] = "l2"
    divergence_threshold: float = Field(default=1e10, gt=0)

    model_config = ConfigDict(validate_assignment=True)

    def get_residual_tolerance(self) -> float:
        """Tolerance of the residual criterion."""
        return self.residual_tolerance if self.residual_tolerance is not None else self.tolerance


class AndersonConfig(BaseModel):
    """
    Configuration of the quasi-Newton (Anderson mixing / IQN-ILS) accelerator.

    Attributes
    ----------
    max_iterations : int
        Evaluations allowed per accelerate call, the initial one included
    initial_relaxation : float
        Relaxation factor of the start-up step when no history is available
    max_used_iterations : int
        Cap on the number of history columns (0 = fixed relaxation only)
    nb_reuse : int
        Number of past time steps whose history is reused
    singularity_limit : float
        Singular values at or below this limit are discarded, in (0, 1)
    reuse_information_starting_from_time_index : int
        Time index from which history and Jacobians are carried over; scaling
        factors are recomputed up to and including this index
    scaling : bool
        Normalise the two interface blocks separately
    beta : float
        Relaxation weight of the Jacobian-free update
    update_jacobian : bool
        Build an explicit approximate Jacobian instead of solving for
        coefficients only
    size_var0, size_var1 : int | None
        Block sizes of the interface vector used by scaling
    max_stages : int
        Number of coupling stages per time step
    """

    max_iterations: int = Field(default=20, ge=1)
    initial_relaxation: float = Field(default=0.01, gt=0)
    max_used_iterations: int = Field(default=50, ge=0)
    nb_reuse: int = Field(default=0, ge=0)
    singularity_limit: float = Field(default=1e-11, gt=0, lt=1)
    reuse_information_starting_from_time_index: int = 0
    scaling: bool = False
    beta: float = Field(default=1.0, gt=0)
    update_jacobian: bool = False
    size_var0: int | None = Field(default=None, ge=0)
    size_var1: int | None = Field(default=None, ge=0)
    max_stages: int = Field(default=1, ge=1)

    model_config = ConfigDict(validate_assignment=True)

    @model_validator(mode="after")
    def validate_block_sizes(self) -> AndersonConfig:
        """Block sizes come as a pair."""
        if (self.size_var0 is None) != (self.size_var1 is None):
            raise ValueError("size_var0 and size_var1 must be given together")
        return self

    @property
    def block_sizes(self) -> tuple[int, int] | None:
        if self.size_var0 is None or self.size_var1 is None:
            return None
        return self.size_var0, self.size_var1

    @classmethod
    def fixed_relaxation(cls, relaxation: float = 0.5, max_iterations: int = 100) -> AndersonConfig:
        """Configuration that never builds a quasi-Newton model."""
        return cls(initial_relaxation=relaxation, max_iterations=max_iterations, max_used_iterations=0)


class CouplingConfig(BaseModel):
    """
    Complete configuration of a coupled interface acceleration.

    Examples
    --------
    >>> config = CouplingConfig.from_yaml("coupling.yaml")

    >>> config = CouplingConfig(
    ...     anderson=AndersonConfig(max_used_iterations=10, nb_reuse=2),
    ...     convergence=ConvergenceSettings(tolerance=1e-8),
    ... )
    """

    anderson: AndersonConfig = Field(default_factory=AndersonConfig)
    convergence: ConvergenceSettings = Field(default_factory=ConvergenceSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        from .io import save_coupling_config

        save_coupling_config(self, path)

    @classmethod
    def from_yaml(cls, path: str | Path) -> CouplingConfig:
        """Load configuration from a YAML file."""
        from .io import load_coupling_config

        return load_coupling_config(path)


def build_config(model: type[BaseModel], component: str | None = None, **parameters) -> BaseModel:
    """
    Validate ``parameters`` against ``model``, reporting the first problem as
    a ConfigurationError instead of a pydantic ValidationError.
    """
    try:
        return model(**parameters)
    except ValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"]) or "<model>"
        raise ConfigurationError(
            parameter_name=location,
            provided_value=error.get("input"),
            component=component,
            reason=error.get("msg"),
        ) from e
