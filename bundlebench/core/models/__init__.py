"""Data models for bundlebench."""

from .entities import PinholeCamera, AdjustedCamera, PointType, ControlMeasure, ControlPoint
from .network import ControlNetwork
from .settings import AdjustmentType, AdjustmentSettings, RunSettings, ERROR_REPORT_LEVEL

__all__ = [
    "PinholeCamera",
    "AdjustedCamera",
    "PointType",
    "ControlMeasure",
    "ControlPoint",
    "ControlNetwork",
    "AdjustmentType",
    "AdjustmentSettings",
    "RunSettings",
    "ERROR_REPORT_LEVEL",
]
