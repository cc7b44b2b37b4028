from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fsi_coupling")  # Matches the name in pyproject.toml
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0-dev"

from .alg.coupling import (  # noqa: E402
    AndersonAccelerator,
    AndersonUpdateRule,
    FixedRelaxationRule,
    PostProcessing,
    create_anderson_accelerator,
    create_fixed_relaxation_accelerator,
)
from .config import AndersonConfig, ConvergenceSettings, CouplingConfig  # noqa: E402
from .core import CallableEvaluator, Evaluator, LinearFixedPointEvaluator  # noqa: E402
from .utils.acceleration_result import AccelerationResult, AccelerationState  # noqa: E402
from .utils.exceptions import (  # noqa: E402
    ConfigurationError,
    DimensionMismatchError,
    EvaluationFailure,
    FSICouplingError,
    StageLifecycleError,
)

__all__ = [
    "AccelerationResult",
    "AccelerationState",
    "AndersonAccelerator",
    "AndersonConfig",
    "AndersonUpdateRule",
    "CallableEvaluator",
    "ConfigurationError",
    "ConvergenceSettings",
    "CouplingConfig",
    "DimensionMismatchError",
    "EvaluationFailure",
    "Evaluator",
    "FSICouplingError",
    "FixedRelaxationRule",
    "LinearFixedPointEvaluator",
    "PostProcessing",
    "StageLifecycleError",
    "__version__",
    "create_anderson_accelerator",
    "create_fixed_relaxation_accelerator",
]
