"""
Exception classes for fsi_coupling with helpful error messages and user guidance.

Every exception carries the component that raised it, an optional suggested
action, an error code and diagnostic data, so that a failed coupling attempt
can be diagnosed from the message alone.
"""

from __future__ import annotations

from typing import Any

import numpy as np


class FSICouplingError(Exception):
    """
    Base exception for coupling acceleration errors with context and suggestions.

    This exception class provides structured error information including:
    - Clear error description
    - Component context information
    - Suggested actions for resolution
    - Optional diagnostic data
    """

    def __init__(
        self,
        message: str,
        component: str | None = None,
        suggested_action: str | None = None,
        error_code: str | None = None,
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.component = component or "Unknown Component"
        self.suggested_action = suggested_action
        self.error_code = error_code
        self.diagnostic_data = diagnostic_data or {}

        full_message = f"[{self.component}] {message}"

        if self.suggested_action:
            full_message += f"\nSuggestion: {self.suggested_action}"

        if self.error_code:
            full_message += f"\nError Code: {self.error_code}"

        if self.diagnostic_data:
            full_message += "\nDiagnostic Information:"
            for key, value in self.diagnostic_data.items():
                full_message += f"\n   - {key}: {value}"

        super().__init__(full_message)


class ConfigurationError(FSICouplingError):
    """Exception raised when the accelerator configuration is invalid."""

    def __init__(
        self,
        parameter_name: str,
        provided_value: Any,
        expected_type: type | None = None,
        valid_range: tuple | None = None,
        component: str | None = None,
        reason: str | None = None,
    ):
        self.parameter_name = parameter_name
        self.provided_value = provided_value

        diagnostic_data = {
            "parameter": parameter_name,
            "provided_value": str(provided_value),
            "provided_type": type(provided_value).__name__,
        }

        if expected_type:
            diagnostic_data["expected_type"] = expected_type.__name__

        if valid_range:
            diagnostic_data["valid_range"] = f"[{valid_range[0]}, {valid_range[1]}]"

        if reason:
            diagnostic_data["reason"] = reason

        suggested_action = _generate_configuration_suggestions(
            parameter_name, provided_value, expected_type, valid_range
        )

        message = f"Invalid configuration for parameter '{parameter_name}'"

        super().__init__(
            message=message,
            component=component,
            suggested_action=suggested_action,
            error_code="INVALID_CONFIGURATION",
            diagnostic_data=diagnostic_data,
        )


class DimensionMismatchError(FSICouplingError):
    """Exception raised when vector dimensions don't match expected values."""

    def __init__(
        self,
        array_name: str,
        provided_shape: tuple,
        expected_shape: tuple,
        component: str | None = None,
        context: str | None = None,
    ):
        self.array_name = array_name
        self.provided_shape = tuple(provided_shape)
        self.expected_shape = tuple(expected_shape)

        diagnostic_data = {
            "array_name": array_name,
            "provided_shape": str(self.provided_shape),
            "expected_shape": str(self.expected_shape),
            "dimension_mismatch": _describe_dimension_mismatch(self.provided_shape, self.expected_shape),
        }

        if context:
            diagnostic_data["context"] = context

        suggested_action = _generate_dimension_suggestions(array_name, self.provided_shape, self.expected_shape)

        message = f"Dimension mismatch for {array_name}"

        super().__init__(
            message=message,
            component=component,
            suggested_action=suggested_action,
            error_code="DIMENSION_MISMATCH",
            diagnostic_data=diagnostic_data,
        )


class EvaluationFailure(FSICouplingError):
    """
    Exception raised by an evaluator when a physics solve fails.

    The accelerator never catches this exception: it aborts the current
    coupling attempt and propagates to the caller unchanged. The accelerator
    must be reset before it is used again.
    """

    def __init__(
        self,
        reason: str,
        component: str | None = None,
        iteration: int | None = None,
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.reason = reason
        data = dict(diagnostic_data or {})
        if iteration is not None:
            data["iteration"] = iteration

        super().__init__(
            message=f"Evaluation failed: {reason}",
            component=component or "Evaluator",
            suggested_action="Reduce the time step or improve the initial guess, then call reset() before retrying",
            error_code="EVALUATION_FAILURE",
            diagnostic_data=data,
        )


class StageLifecycleError(FSICouplingError):
    """Exception raised when stage/time-step bookkeeping is used out of order."""

    def __init__(
        self,
        operation: str,
        expected_state: str,
        component: str | None = None,
        stage_index: int | None = None,
        max_stages: int | None = None,
    ):
        diagnostic_data: dict[str, Any] = {"operation": operation, "expected_state": expected_state}
        if stage_index is not None:
            diagnostic_data["stage_index"] = stage_index
        if max_stages is not None:
            diagnostic_data["max_stages"] = max_stages

        super().__init__(
            message=f"Cannot perform '{operation}': {expected_state}",
            component=component,
            suggested_action="Call init_stage() before accelerate() and finalize_stage() before finalize_time_step()",
            error_code="STAGE_LIFECYCLE",
            diagnostic_data=diagnostic_data,
        )


# Helper functions for generating specific suggestions


def _generate_configuration_suggestions(
    parameter_name: str,
    provided_value: Any,
    expected_type: type | None,
    valid_range: tuple | None,
) -> str:
    """Generate specific suggestions for configuration errors."""

    suggestions = []

    if expected_type and not isinstance(provided_value, expected_type):
        suggestions.append(f"Convert {parameter_name} to {expected_type.__name__}")

    if valid_range and isinstance(provided_value, (int, float)):
        if provided_value <= valid_range[0]:
            suggestions.append(f"Increase {parameter_name} above {valid_range[0]}")
        elif provided_value >= valid_range[1]:
            suggestions.append(f"Decrease {parameter_name} below {valid_range[1]}")

    if "singularity" in parameter_name.lower():
        suggestions.append("Singular value limits are typically between 1e-14 and 1e-6")

    if parameter_name.lower() == "scaling":
        suggestions.append("Scaling needs an evaluator that couples both blocks in parallel (parallel=True)")

    return " | ".join(suggestions) if suggestions else f"Check {parameter_name} value and try again"


def _describe_dimension_mismatch(provided_shape: tuple, expected_shape: tuple) -> str:
    """Describe the specific nature of dimension mismatch."""

    if len(provided_shape) != len(expected_shape):
        return f"Wrong number of dimensions: got {len(provided_shape)}, expected {len(expected_shape)}"

    mismatches = []
    for i, (provided, expected) in enumerate(zip(provided_shape, expected_shape, strict=False)):
        if provided != expected:
            mismatches.append(f"axis {i}: got {provided}, expected {expected}")

    return " | ".join(mismatches)


def _generate_dimension_suggestions(array_name: str, provided_shape: tuple, expected_shape: tuple) -> str:
    """Generate specific suggestions for dimension errors."""

    if "history" in array_name.lower():
        return "The interface size changed; call reset() to drop history recorded for the old size"

    if "block" in array_name.lower():
        return (
            f"size_var0 + size_var1 = {expected_shape[0]} must equal "
            f"the interface vector length {provided_shape[0]}"
        )

    return f"Pass a 1-D interface vector of shape {expected_shape} for {array_name}"


# Convenience functions for common error scenarios


def validate_vector_length(
    vector: np.ndarray,
    expected_length: int,
    array_name: str,
    component: str | None = None,
    context: str | None = None,
) -> None:
    """Validate that a coupling vector is 1-D with the expected length."""
    if vector.ndim != 1 or vector.shape[0] != expected_length:
        raise DimensionMismatchError(
            array_name=array_name,
            provided_shape=vector.shape,
            expected_shape=(expected_length,),
            component=component,
            context=context,
        )
