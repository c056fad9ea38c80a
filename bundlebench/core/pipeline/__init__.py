"""Adjustment pipeline: outlier-removal cycle and end-to-end runs."""

from .outliers import (
    CycleState,
    CycleResult,
    OutlierDetector,
    SubprocessOutlierDetector,
    OutlierRemovalCycle,
)
from .runner import run_harness

__all__ = [
    "CycleState",
    "CycleResult",
    "OutlierDetector",
    "SubprocessOutlierDetector",
    "OutlierRemovalCycle",
    "run_harness",
]
