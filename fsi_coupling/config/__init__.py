"""
Configuration for coupling acceleration.

Pydantic models validated on construction, with YAML round-tripping.
"""

from .core import AndersonConfig, ConvergenceSettings, CouplingConfig, LoggingConfig, build_config
from .io import load_coupling_config, save_coupling_config, validate_yaml_config

__all__ = [
    "AndersonConfig",
    "ConvergenceSettings",
    "CouplingConfig",
    "LoggingConfig",
    "build_config",
    "load_coupling_config",
    "save_coupling_config",
    "validate_yaml_config",
]
