"""Bundle adjustment strategies and iteration control."""

from .base import BundleAdjusterBase, NormalEquations
from .strategies import (
    AdjustRef,
    AdjustSparse,
    AdjustSparseHuber,
    AdjustSparseCauchy,
    AdjustRobustRef,
    AdjustRobustSparse,
    ADJUSTERS,
    make_adjuster,
)
from .reporting import BundleAdjustReport
from .controller import ControllerState, IterationResult, IterationController

__all__ = [
    "BundleAdjusterBase",
    "NormalEquations",
    "AdjustRef",
    "AdjustSparse",
    "AdjustSparseHuber",
    "AdjustSparseCauchy",
    "AdjustRobustRef",
    "AdjustRobustSparse",
    "ADJUSTERS",
    "make_adjuster",
    "BundleAdjustReport",
    "ControllerState",
    "IterationResult",
    "IterationController",
]
