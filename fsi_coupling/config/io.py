"""
YAML I/O for coupling configurations.

This module provides functions to load and save coupling configurations
from/to YAML files with schema validation.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from .core import CouplingConfig


def load_coupling_config(path: str | Path) -> CouplingConfig:
    """
    Load coupling configuration from YAML file.

    Parameters
    ----------
    path : str | Path
        Path to YAML configuration file

    Returns
    -------
    CouplingConfig
        Validated coupling configuration

    Raises
    ------
    FileNotFoundError
        If configuration file doesn't exist
    ValueError
        If configuration is invalid
    yaml.YAMLError
        If YAML syntax is invalid

    YAML Format
    -----------
    anderson:
      max_iterations: 50
      max_used_iterations: 10
      nb_reuse: 2
      singularity_limit: 1.0e-11
    convergence:
      tolerance: 1.0e-6
    logging:
      level: INFO
    """
    from .core import CouplingConfig

    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {path}\nPlease create a YAML configuration file or use programmatic config."
        )

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML syntax in {path}: {e}") from e

    if data is None:
        data = {}

    try:
        return CouplingConfig.model_validate(data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {path}:\n{e}") from e


def save_coupling_config(config: CouplingConfig, path: str | Path) -> None:
    """
    Save coupling configuration to YAML file.

    Parameters
    ----------
    config : CouplingConfig
        Configuration to save
    path : str | Path
        Output file path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(exclude_none=True, mode="json")

    with open(path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False, indent=2, allow_unicode=True)


def validate_yaml_config(path: str | Path) -> tuple[bool, str]:
    """
    Validate YAML configuration without keeping it.

    Returns
    -------
    tuple[bool, str]
        (is_valid, message) - True if valid, False with error message otherwise
    """
    try:
        load_coupling_config(path)
        return True, "Configuration is valid"
    except FileNotFoundError as e:
        return False, str(e)
    except yaml.YAMLError as e:
        return False, f"YAML syntax error: {e}"
    except ValueError as e:
        return False, f"Validation error: {e}"
