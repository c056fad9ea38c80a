"""Bundlebench - bundle adjustment test harness

Refines pinhole camera poses and control point positions against pixel
measurements, with interchangeable solver strategies and an optional
outlier-removal refit.
"""

__version__ = "0.1.0"

# Core models
from .core.models.entities import PinholeCamera, AdjustedCamera, ControlMeasure, ControlPoint, PointType
from .core.models.network import ControlNetwork
from .core.models.settings import AdjustmentType, AdjustmentSettings, RunSettings

# Optimization
from .core.optimization.parameter_model import ParameterModel
from .core.solver.strategies import make_adjuster
from .core.solver.controller import IterationController, ControllerState

# Pipeline
from .core.pipeline.outliers import OutlierRemovalCycle, SubprocessOutlierDetector
from .core.pipeline.runner import run_harness

__all__ = [
    # Version
    "__version__",
    # Models
    "PinholeCamera",
    "AdjustedCamera",
    "ControlMeasure",
    "ControlPoint",
    "PointType",
    "ControlNetwork",
    "AdjustmentType",
    "AdjustmentSettings",
    "RunSettings",
    # Optimization
    "ParameterModel",
    "make_adjuster",
    "IterationController",
    "ControllerState",
    # Pipeline
    "OutlierRemovalCycle",
    "SubprocessOutlierDetector",
    "run_harness",
]
