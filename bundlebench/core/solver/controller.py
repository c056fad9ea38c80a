"""Drives an adjuster until it converges or runs out of iterations."""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ..export.writers import SnapshotWriter
from .base import BundleAdjusterBase
from .reporting import BundleAdjustReport

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    RUNNING = "running"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class IterationResult(BaseModel):
    """Outcome of one controlled adjustment run."""

    state: ControllerState
    iterations: int
    last_delta: Optional[float] = None
    abs_tolerance: float
    rel_tolerance: float
    error_report: Optional[Path] = None


class IterationController:
    """Repeatedly calls ``adjuster.update()``.

    Stops when the iteration budget is spent, when either tolerance drops
    below ``TOLERANCE``, or when an update returns a zero step. The adjuster
    is always finalized, also when an update raises.
    """

    TOLERANCE = 1e-3

    def __init__(
        self,
        adjuster: BundleAdjusterBase,
        max_iterations: int,
        snapshots: Optional[SnapshotWriter] = None,
        reporter: Optional[BundleAdjustReport] = None,
    ):
        if max_iterations < 0:
            raise ValueError(f"max_iterations must be non-negative, got {max_iterations}")
        self.adjuster = adjuster
        self.max_iterations = max_iterations
        self.snapshots = snapshots
        self.reporter = reporter
        self.state = ControllerState.RUNNING

    def _converged(self) -> bool:
        return (
            self.adjuster.abs_tolerance < self.TOLERANCE
            or self.adjuster.rel_tolerance < self.TOLERANCE
        )

    def run(self) -> IterationResult:
        adjuster = self.adjuster
        iterations = 0
        last_delta = None
        error_report = None
        self.state = ControllerState.RUNNING

        try:
            while self.state == ControllerState.RUNNING:
                if iterations >= self.max_iterations:
                    self.state = ControllerState.EXHAUSTED
                    break
                if self._converged():
                    self.state = ControllerState.CONVERGED
                    break

                last_delta = adjuster.update()
                iterations += 1
                if self.snapshots is not None:
                    self.snapshots.append(adjuster.model)
                logger.debug(
                    f"Iteration {iterations}: delta {last_delta:.6g}, "
                    f"abs tol {adjuster.abs_tolerance:.6g}, rel tol {adjuster.rel_tolerance:.6g}"
                )
                if last_delta == 0.0:
                    self.state = ControllerState.CONVERGED
        finally:
            error_report = adjuster.finalize(self.reporter)

        logger.info(f"{adjuster.name}: {self.state.value} after {iterations} iterations")
        return IterationResult(
            state=self.state,
            iterations=iterations,
            last_delta=last_delta,
            abs_tolerance=adjuster.abs_tolerance,
            rel_tolerance=adjuster.rel_tolerance,
            error_report=error_report,
        )
