"""Evaluator capability and reference evaluators."""

from .evaluator import CallableEvaluator, Evaluator, LinearFixedPointEvaluator

__all__ = ["CallableEvaluator", "Evaluator", "LinearFixedPointEvaluator"]
