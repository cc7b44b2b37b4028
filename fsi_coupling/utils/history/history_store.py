"""
Windowed coupling history across iterations, stages and time steps.

All (solution, residual) samples live in one flat, chronologically ordered
arena. Three kinds of ranges partition it:

- the current window: the samples of the running accelerate call, always the
  tail of the arena;
- stage ranges: windows retained after a converged coupling attempt within
  the current time step;
- time groups: the stage ranges of past time steps, at most ``nb_reuse`` of
  them.

Difference pairs are read back in priority order: current window (most recent
pair first), stage ranges (most recently retained first), then time groups
(most recent time step first). Truncating that sequence therefore drops the
oldest information first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from fsi_coupling.utils.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray


@dataclass(frozen=True)
class ResidualSample:
    """Solution and residual recorded at one evaluation."""

    solution: NDArray[np.floating]
    residual: NDArray[np.floating]


@dataclass(frozen=True)
class SampleRange:
    """Half-open slice ``[start, stop)`` of the arena holding one retained window."""

    start: int
    stop: int
    time_index: int = 0
    stage_index: int = 0

    def __len__(self) -> int:
        return self.stop - self.start

    @property
    def n_differences(self) -> int:
        return max(len(self) - 1, 0)

    def shifted(self, start: int) -> SampleRange:
        return SampleRange(start, start + len(self), self.time_index, self.stage_index)


class HistoryStore:
    """
    Flat arena of residual samples with iteration, stage and time-step levels.

    Args:
        nb_reuse: Number of past time steps kept by ``roll_time_step``
    """

    def __init__(self, nb_reuse: int = 0) -> None:
        self.nb_reuse = nb_reuse
        self._samples: list[ResidualSample] = []
        self._window_start = 0
        self._stage_ranges: list[SampleRange] = []
        # Oldest time step first
        self._time_groups: list[list[SampleRange]] = []

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    @property
    def dimension(self) -> int | None:
        """Interface dimension of the stored samples, None when empty."""
        if not self._samples:
            return None
        return self._samples[0].residual.shape[0]

    def check_dimension(self, length: int, array_name: str = "history entry") -> None:
        dimension = self.dimension
        if dimension is not None and length != dimension:
            raise DimensionMismatchError(
                array_name=array_name,
                provided_shape=(length,),
                expected_shape=(dimension,),
                component="HistoryStore",
                context="history holds samples of a different interface size",
            )

    def record(self, solution: NDArray, residual: NDArray) -> None:
        """Prepend a sample to the current window (it becomes entry 0)."""
        solution = np.array(solution, dtype=float, copy=True)
        residual = np.array(residual, dtype=float, copy=True)

        if solution.shape != residual.shape:
            raise DimensionMismatchError(
                array_name="residual",
                provided_shape=residual.shape,
                expected_shape=solution.shape,
                component="HistoryStore",
            )
        self.check_dimension(residual.shape[0])

        self._samples.append(ResidualSample(solution, residual))

    def clear_window(self) -> None:
        del self._samples[self._window_start :]

    def reset(self) -> None:
        self._samples.clear()
        self._window_start = 0
        self._stage_ranges.clear()
        self._time_groups.clear()

    # ------------------------------------------------------------------
    # Views, most recent first
    # ------------------------------------------------------------------

    def _range_view(self, sample_range: SampleRange) -> list[ResidualSample]:
        return self._samples[sample_range.start : sample_range.stop][::-1]

    @property
    def window(self) -> list[ResidualSample]:
        """Samples of the current window, most recent first."""
        return self._samples[self._window_start :][::-1]

    @property
    def solutions(self) -> list[NDArray]:
        return [sample.solution for sample in self.window]

    @property
    def residuals(self) -> list[NDArray]:
        return [sample.residual for sample in self.window]

    @property
    def stage_history(self) -> list[list[ResidualSample]]:
        """Retained windows of the current time step, in retention order."""
        return [self._range_view(r) for r in self._stage_ranges]

    @property
    def time_history(self) -> list[list[list[ResidualSample]]]:
        """Retained windows grouped per past time step, oldest time step first."""
        return [[self._range_view(r) for r in group] for group in self._time_groups]

    @property
    def has_stage_history(self) -> bool:
        return bool(self._stage_ranges)

    # ------------------------------------------------------------------
    # Column bookkeeping
    # ------------------------------------------------------------------

    def _ranges_by_priority(self) -> Iterator[SampleRange]:
        yield SampleRange(self._window_start, len(self._samples))
        yield from reversed(self._stage_ranges)
        for group in reversed(self._time_groups):
            yield from reversed(group)

    def count_differences(self) -> int:
        """Consecutive-difference pairs over window, stage and time history."""
        return sum(r.n_differences for r in self._ranges_by_priority())

    def available_columns(self, dimension: int, cap: int) -> int:
        """Number of history columns usable for an interface of size ``dimension``."""
        return max(min(dimension, cap, self.count_differences()), 0)

    def iter_differences(self) -> Iterator[tuple[NDArray, NDArray]]:
        """Yield ``(R[i] - R[i+1], x[i] - x[i+1])`` pairs in priority order."""
        samples = self._samples
        for r in self._ranges_by_priority():
            for i in range(r.stop - 1, r.start, -1):
                newer, older = samples[i], samples[i - 1]
                yield newer.residual - older.residual, newer.solution - older.solution

    def difference_matrices(self, n_cols: int) -> tuple[NDArray, NDArray]:
        """
        Build V (residual differences) and W (solution differences).

        Args:
            n_cols: Number of columns, at most ``count_differences()``

        Returns:
            (V, W), each of shape (dimension, n_cols)
        """
        dimension = self.dimension or 0
        V = np.empty((dimension, n_cols))
        W = np.empty((dimension, n_cols))

        col = -1
        for col, (dr, dx) in zip(range(n_cols), self.iter_differences(), strict=False):
            V[:, col] = dr
            W[:, col] = dx

        if col + 1 != n_cols:
            raise ValueError(f"Requested {n_cols} columns but history holds only {col + 1}")
        return V, W

    # ------------------------------------------------------------------
    # Level transitions
    # ------------------------------------------------------------------

    def roll_stage(self, retain: bool, time_index: int = 0, stage_index: int = 0) -> bool:
        """
        Close the current window and start a new one.

        The window becomes stage history when ``retain`` is set and it holds
        at least one difference pair (two samples); otherwise it is discarded.
        Returns whether it was kept.
        """
        if retain and len(self._samples) - self._window_start >= 2:
            self._stage_ranges.append(SampleRange(self._window_start, len(self._samples), time_index, stage_index))
            self._window_start = len(self._samples)
            return True

        self.clear_window()
        return False

    def roll_time_step(self, retain: bool = True) -> None:
        """
        Close the current time step.

        The stage ranges become one time group when ``retain`` is set and there
        is anything to keep, then groups beyond ``nb_reuse`` are evicted oldest
        first.
        """
        if retain and self._stage_ranges:
            self._time_groups.append(list(self._stage_ranges))
        self._stage_ranges = []

        excess = len(self._time_groups) - self.nb_reuse
        if excess > 0:
            del self._time_groups[:excess]

        self._compact()

    def _compact(self) -> None:
        """Drop samples no longer referenced by any range and renumber."""
        samples: list[ResidualSample] = []

        def move(r: SampleRange) -> SampleRange:
            moved = r.shifted(len(samples))
            samples.extend(self._samples[r.start : r.stop])
            return moved

        self._time_groups = [[move(r) for r in group] for group in self._time_groups]
        self._stage_ranges = [move(r) for r in self._stage_ranges]

        window = self._samples[self._window_start :]
        self._window_start = len(samples)
        samples.extend(window)
        self._samples = samples

    def __len__(self) -> int:
        return len(self._samples) - self._window_start

    def __repr__(self) -> str:
        return (
            f"HistoryStore(window={len(self)}, stages={len(self._stage_ranges)}, "
            f"time_steps={len(self._time_groups)}, differences={self.count_differences()})"
        )
