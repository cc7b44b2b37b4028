"""
Shared bookkeeping for interface post-processing (acceleration) schemes.

PostProcessing owns everything an update rule needs besides the rule itself:
the coupling history, block scaling, the cached approximate Jacobian, the
convergence checker and the stage / time-step lifecycle.

Lifecycle per time step::

    post.init_stage(0)
    accelerator.accelerate(x0, xk)     # one or more coupling attempts
    post.finalize_stage()
    ...                                # further stages up to max_stages
    post.finalize_time_step()
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from fsi_coupling.utils.convergence import CouplingConvergenceChecker
from fsi_coupling.utils.exceptions import StageLifecycleError
from fsi_coupling.utils.fsi_logging import get_logger
from fsi_coupling.utils.history import HistoryStore
from fsi_coupling.utils.numerical.linear_solve_kernel import ApproximateJacobian
from fsi_coupling.utils.numerical.scaling import ScalingPolicy

if TYPE_CHECKING:
    from collections.abc import Iterator

    import numpy as np
    from numpy.typing import NDArray

    from fsi_coupling.config.core import AndersonConfig, ConvergenceSettings

logger = get_logger(__name__)


class PostProcessing:
    """
    History, scaling and lifecycle shared by all coupling update rules.

    Args:
        config: Accelerator configuration
        convergence: Convergence settings (defaults when None)
        block_sizes: (size_var0, size_var1) for scaling; required when
            ``config.scaling`` is set
    """

    def __init__(
        self,
        config: AndersonConfig,
        convergence: ConvergenceSettings | None = None,
        block_sizes: tuple[int, int] | None = None,
    ) -> None:
        self.config = config
        self.history = HistoryStore(nb_reuse=config.nb_reuse)
        self.jacobian = ApproximateJacobian()
        self.checker = CouplingConvergenceChecker(convergence)

        size_var0, size_var1 = block_sizes if block_sizes is not None else (0, 0)
        self.scaling = ScalingPolicy(
            size_var0=size_var0,
            size_var1=size_var1,
            enabled=config.scaling,
            threshold_time_index=config.reuse_information_starting_from_time_index,
        )

        self.time_index = 0
        self.stage_index = 0
        self._stage_active = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def stage_active(self) -> bool:
        return self._stage_active

    def init_stage(self, stage_index: int = 0) -> None:
        if self._stage_active:
            raise StageLifecycleError("init_stage", "a stage is already active", component="PostProcessing")
        if not 0 <= stage_index < self.config.max_stages:
            raise StageLifecycleError(
                "init_stage",
                "stage index out of range",
                component="PostProcessing",
                stage_index=stage_index,
                max_stages=self.config.max_stages,
            )
        self.stage_index = stage_index
        self._stage_active = True

    def finalize_stage(self) -> None:
        if not self._stage_active:
            raise StageLifecycleError("finalize_stage", "no stage is active", component="PostProcessing")
        self._stage_active = False

    def finalize_time_step(self) -> None:
        """Move this time step's stage history into the reusable time history."""
        if self._stage_active:
            raise StageLifecycleError(
                "finalize_time_step", "the active stage must be finalized first", component="PostProcessing"
            )

        retain = (
            self.config.nb_reuse > 0
            and self.time_index >= self.config.reuse_information_starting_from_time_index
        )
        self.history.roll_time_step(retain=retain)
        logger.debug(f"Finalized time step {self.time_index}: {self.history!r}")
        self.time_index += 1

    @contextmanager
    def stage(self, stage_index: int = 0) -> Iterator[PostProcessing]:
        """Run a block inside ``init_stage`` / ``finalize_stage``."""
        self.init_stage(stage_index)
        try:
            yield self
        finally:
            self.finalize_stage()

    def assert_ready(self) -> None:
        """Raise unless an accelerate call is allowed right now."""
        if not self._stage_active:
            raise StageLifecycleError(
                "accelerate", "init_stage() must be called first", component="PostProcessing"
            )

    def reset(self) -> None:
        """Forget all history, the cached Jacobian and the lifecycle state."""
        self.history.reset()
        self.jacobian.invalidate()
        self.time_index = 0
        self.stage_index = 0
        self._stage_active = False

    # ------------------------------------------------------------------
    # Per-evaluation bookkeeping
    # ------------------------------------------------------------------

    def determine_scaling_factors(self, output: NDArray[np.floating]) -> None:
        if self.scaling.compute_factors(output, self.time_index):
            self.jacobian.invalidate()

    def record(self, solution: NDArray[np.floating], residual: NDArray[np.floating]) -> None:
        self.history.record(solution, residual)

    def available_columns(self, dimension: int) -> int:
        return self.history.available_columns(dimension, self.config.max_used_iterations)

    def iterations_converged(self, residual_criterion: bool) -> bool:
        """Apply the retention rule to the converged window; returns whether it was kept."""
        keep = self.checker.should_retain(residual_criterion, self.history.has_stage_history)
        return self.history.roll_stage(keep, time_index=self.time_index, stage_index=self.stage_index)

    def cache_jacobian(self, jacobian: NDArray[np.floating] | None) -> None:
        """Keep ``jacobian`` for later calls once reuse is allowed at this time index."""
        if jacobian is None or not self.config.update_jacobian:
            return
        if self.time_index >= self.config.reuse_information_starting_from_time_index:
            self.jacobian.store(jacobian)

    def __repr__(self) -> str:
        return (
            f"PostProcessing(time_index={self.time_index}, stage_index={self.stage_index}, "
            f"active={self._stage_active}, {self.history!r})"
        )
