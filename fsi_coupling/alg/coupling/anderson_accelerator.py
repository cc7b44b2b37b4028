"""
Anderson Acceleration for Partitioned Interface Coupling.

Two black-box solvers exchange interface data until a joint fixed point is
reached. Plain fixed-point iteration converges slowly, or diverges, for
strongly coupled problems. The accelerator replaces the plain update by an
interface quasi-Newton step (IQN-ILS / Anderson mixing). It builds a
low-rank model from the residual and solution differences of the current
iteration sequence, of earlier coupling stages and of past time steps.

References:
- Anderson, D. G. (1965). Iterative procedures for nonlinear integral equations.
  Journal of the ACM, 12(4), 547-560.
- Degroote, J., Bathe, K.-J., & Vierendeels, J. (2009). Performance of a new
  partitioned procedure versus a monolithic procedure in fluid-structure
  interaction. Computers & Structures, 87(11-12), 793-801.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import numpy as np

from fsi_coupling.config.core import AndersonConfig, ConvergenceSettings, CouplingConfig, build_config
from fsi_coupling.utils.acceleration_result import AccelerationResult, AccelerationState
from fsi_coupling.utils.exceptions import ConfigurationError, validate_vector_length
from fsi_coupling.utils.fsi_logging import get_logger, log_solver_configuration
from fsi_coupling.utils.numerical.linear_solve_kernel import LinearSolveKernel

from .post_processing import PostProcessing
from .update_rules import AndersonUpdateRule, FixedRelaxationRule

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

    from numpy.typing import NDArray

    from fsi_coupling.core.evaluator import Evaluator

    from .update_rules import UpdateRule

logger = get_logger(__name__)


class AndersonAccelerator:
    """
    Quasi-Newton accelerator driving an evaluator to its interface fixed point.

    Each accelerate call runs the loop
    evaluate -> record -> check convergence -> compute update -> apply,
    until convergence (state CONVERGED) or until ``max_iterations``
    evaluations have been made (state EXHAUSTED). The instance keeps history
    and the cached Jacobian between calls, so it is not reentrant: one
    accelerate call at a time.

    Args:
        evaluator: Object with ``evaluate(x) -> (output, residual)``
        config: Accelerator configuration; built from ``parameters`` when None
        convergence: Convergence settings (defaults when None)
        update_rule: Correction strategy (Anderson mixing when None)
        **parameters: AndersonConfig fields, overriding ``config``

    Raises:
        ConfigurationError: Invalid parameters, or scaling requested without a
            parallel evaluator or without block sizes

    Example:
        accelerator = AndersonAccelerator(evaluator, max_used_iterations=10, nb_reuse=2)
        with accelerator.stage(0):
            result = accelerator.accelerate(x0, xk)
        accelerator.finalize_time_step()
    """

    def __init__(
        self,
        evaluator: Evaluator,
        config: AndersonConfig | None = None,
        convergence: ConvergenceSettings | None = None,
        update_rule: UpdateRule | None = None,
        **parameters: Any,
    ) -> None:
        if config is None or parameters:
            base = config.model_dump() if config is not None else {}
            config = build_config(AndersonConfig, component=type(self).__name__, **{**base, **parameters})

        self.evaluator = evaluator
        self.config = config

        block_sizes = self._resolve_block_sizes(evaluator, config)
        self.post = PostProcessing(config, convergence, block_sizes)
        self.kernel = LinearSolveKernel(config.singularity_limit, config.beta, config.update_jacobian)
        self.update_rule = update_rule or AndersonUpdateRule(self.kernel, config.initial_relaxation)

        self.state = AccelerationState.INIT
        self.last_result: AccelerationResult | None = None

        logger.debug(
            f"{type(self).__name__} created: max_used_iterations={config.max_used_iterations}, "
            f"nb_reuse={config.nb_reuse}, update_jacobian={config.update_jacobian}, scaling={config.scaling}"
        )

    def log_configuration(self) -> None:
        """Log the full configuration, one parameter per line."""
        log_solver_configuration(
            logger,
            type(self).__name__,
            self.config.model_dump(),
            problem_info={
                "update_rule": type(self.update_rule).__name__,
                "block_sizes": (self.post.scaling.size_var0, self.post.scaling.size_var1),
            },
        )

    @classmethod
    def from_config(cls, evaluator: Evaluator, config: CouplingConfig, **kwargs: Any) -> AndersonAccelerator:
        return cls(evaluator, config=config.anderson, convergence=config.convergence, **kwargs)

    def _resolve_block_sizes(self, evaluator: Evaluator, config: AndersonConfig) -> tuple[int, int] | None:
        block_sizes = config.block_sizes or getattr(evaluator, "block_sizes", None)
        if not config.scaling:
            return block_sizes

        if not getattr(evaluator, "parallel", False):
            raise ConfigurationError(
                parameter_name="scaling",
                provided_value=True,
                component=type(self).__name__,
                reason="scaling requires an evaluator coupling both blocks in parallel",
            )
        if block_sizes is None:
            raise ConfigurationError(
                parameter_name="size_var0",
                provided_value=None,
                component=type(self).__name__,
                reason="scaling requires block sizes from the config or evaluator.block_sizes",
            )
        return int(block_sizes[0]), int(block_sizes[1])

    # ------------------------------------------------------------------
    # Lifecycle delegation
    # ------------------------------------------------------------------

    @property
    def time_index(self) -> int:
        return self.post.time_index

    @property
    def history(self):
        return self.post.history

    def init_stage(self, stage_index: int = 0) -> None:
        self.post.init_stage(stage_index)

    def finalize_stage(self) -> None:
        self.post.finalize_stage()

    def finalize_time_step(self) -> None:
        self.post.finalize_time_step()

    def stage(self, stage_index: int = 0) -> AbstractContextManager[PostProcessing]:
        return self.post.stage(stage_index)

    def reset(self) -> None:
        """Drop history and cached Jacobian, e.g. after an EvaluationFailure."""
        self.post.reset()
        self.state = AccelerationState.INIT
        self.last_result = None

    # ------------------------------------------------------------------
    # Public accelerate operations
    # ------------------------------------------------------------------

    def accelerate(self, x0: NDArray, xk: NDArray) -> AccelerationResult:
        """
        Solve ``output(x) = x`` starting from ``x0``; the result is written to ``xk``.

        Convergence is judged with the residual criterion.
        """
        x0 = np.asarray(x0, dtype=float)
        return self._accelerate(np.zeros_like(x0), x0, xk, residual_criterion=True)

    def accelerate_with_offset(self, y: NDArray, x0: NDArray, xk: NDArray) -> AccelerationResult:
        """
        Solve ``output(x) - x = y`` starting from ``x0``; the result is written to ``xk``.

        Convergence is judged with the iteration-sequence criterion.
        """
        return self._accelerate(np.asarray(y, dtype=float), np.asarray(x0, dtype=float), xk, residual_criterion=False)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_inputs(self, y: NDArray, x0: NDArray, xk: NDArray) -> None:
        name = type(self).__name__
        if not isinstance(xk, np.ndarray) or not np.issubdtype(xk.dtype, np.floating):
            raise TypeError("xk must be a floating point numpy array; it is updated in place")

        n = x0.size
        validate_vector_length(x0, n, "x0", component=name)
        validate_vector_length(xk, n, "xk", component=name)
        validate_vector_length(y, n, "y", component=name)
        if n == 0:
            raise ConfigurationError("x0", "empty array", component=name, reason="interface vector is empty")

        self.post.scaling.check_dimension(n, "x0")
        self.post.history.check_dimension(n, "x0 (history)")

    def _evaluate(self, x: NDArray) -> tuple[NDArray, NDArray]:
        self.state = AccelerationState.EVALUATING
        output, residual = self.evaluator.evaluate(x.copy())
        output = np.asarray(output, dtype=float)
        residual = np.asarray(residual, dtype=float)

        name = type(self).__name__
        validate_vector_length(output, x.shape[0], "evaluator output", component=name)
        validate_vector_length(residual, x.shape[0], "evaluator residual", component=name)
        return output, residual

    def _accelerate(self, y: NDArray, x0: NDArray, xk: NDArray, residual_criterion: bool) -> AccelerationResult:
        self._validate_inputs(y, x0, xk)
        self.post.assert_ready()

        start_time = time.perf_counter()
        post = self.post

        self.state = AccelerationState.INIT
        post.history.clear_window()
        x = x0.copy()
        residual_norms: list[float] = []
        columns_used: list[int] = []
        jacobian: NDArray | None = None

        output, R = self._evaluate(x)
        post.determine_scaling_factors(output)
        post.record(x, R)

        converged, metrics = post.checker.check(output, R, y, residual_criterion, evaluations=1)
        residual_norms.append(float(metrics["residual_norm"]))

        if converged:
            post.iterations_converged(residual_criterion)
            return self._finish(xk, x, True, 0, residual_norms, columns_used, metrics, start_time)

        R_scaled = post.scaling.apply_to(R)
        yk_scaled = post.scaling.apply_to(y)

        iterations = 0
        for iteration in range(1, self.config.max_iterations):
            self.state = AccelerationState.ITERATING
            update = self.update_rule.compute_update(post, R_scaled, yk_scaled)
            columns_used.append(update.columns)
            if update.jacobian is not None:
                jacobian = update.jacobian

            x = x + update.dx
            iterations = iteration

            output, R = self._evaluate(x)
            post.record(x, R)

            converged, metrics = post.checker.check(output, R, y, residual_criterion, evaluations=iteration + 1)
            residual_norms.append(float(metrics["residual_norm"]))
            logger.debug(
                f"Iteration {iteration}/{self.config.max_iterations - 1} - "
                f"residual: {residual_norms[-1]:.2e}, mode: {update.mode}"
            )

            if converged:
                post.iterations_converged(residual_criterion)
                post.cache_jacobian(jacobian)
                return self._finish(xk, x, True, iterations, residual_norms, columns_used, metrics, start_time)

            if metrics["status"] != "OK":
                logger.warning(f"Coupling residual diverging at iteration {iteration}: {metrics['status']}")

            post.determine_scaling_factors(output)
            R_scaled = post.scaling.apply_to(R)
            yk_scaled = post.scaling.apply_to(y)

        return self._finish(xk, x, False, iterations, residual_norms, columns_used, metrics, start_time)

    def _finish(
        self,
        xk: NDArray,
        x: NDArray,
        converged: bool,
        iterations: int,
        residual_norms: list[float],
        columns_used: list[int],
        metrics: dict[str, Any],
        start_time: float,
    ) -> AccelerationResult:
        xk[:] = x
        self.state = AccelerationState.CONVERGED if converged else AccelerationState.EXHAUSTED

        result = AccelerationResult(
            converged=converged,
            state=self.state,
            iterations=iterations,
            evaluations=len(residual_norms),
            residual_norms=residual_norms,
            columns_used=columns_used,
            criterion=str(metrics["criterion"]),
            execution_time=time.perf_counter() - start_time,
            metadata={
                "time_index": self.post.time_index,
                "stage_index": self.post.stage_index,
                "status": metrics["status"],
            },
        )
        self.last_result = result

        if converged:
            logger.debug(f"Coupling converged in {iterations} iterations, residual {result.final_residual:.2e}")
        else:
            logger.info(
                f"Coupling not converged after {result.evaluations} evaluations, "
                f"residual {result.final_residual:.2e}"
            )
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self.state.value}, {self.post!r})"


def create_anderson_accelerator(
    evaluator: Evaluator,
    max_used_iterations: int = 50,
    nb_reuse: int = 0,
    convergence: ConvergenceSettings | None = None,
    **kwargs: Any,
) -> AndersonAccelerator:
    """
    Create an Anderson accelerator with sensible defaults.

    Args:
        evaluator: Interface evaluator
        max_used_iterations: Cap on history columns (default: 50)
        nb_reuse: Past time steps to reuse (default: 0)
        convergence: Convergence settings
        **kwargs: Additional AndersonConfig fields

    Returns:
        Configured AndersonAccelerator instance
    """
    return AndersonAccelerator(
        evaluator,
        convergence=convergence,
        max_used_iterations=max_used_iterations,
        nb_reuse=nb_reuse,
        **kwargs,
    )


def create_fixed_relaxation_accelerator(
    evaluator: Evaluator,
    relaxation: float = 0.5,
    max_iterations: int = 100,
    convergence: ConvergenceSettings | None = None,
) -> AndersonAccelerator:
    """
    Create an accelerator that only applies constant under-relaxation.

    Shares the loop, lifecycle and convergence handling of the Anderson
    variant; no history columns are ever used.
    """
    config = AndersonConfig.fixed_relaxation(relaxation=relaxation, max_iterations=max_iterations)
    return AndersonAccelerator(
        evaluator,
        config=config,
        convergence=convergence,
        update_rule=FixedRelaxationRule(relaxation),
    )
