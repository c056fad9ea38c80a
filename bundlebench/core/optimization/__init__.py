"""Parameter store and error diagnostics."""

from .parameter_model import ParameterModel, Observation, CAMERA_PARAMS, POINT_PARAMS, EULER_SEQUENCE
from .diagnostics import (
    ObservationError,
    observation_errors,
    image_errors,
    camera_position_errors,
    camera_pose_errors,
    gcp_errors,
    summarize_errors,
)

__all__ = [
    "ParameterModel",
    "Observation",
    "CAMERA_PARAMS",
    "POINT_PARAMS",
    "EULER_SEQUENCE",
    "ObservationError",
    "observation_errors",
    "image_errors",
    "camera_position_errors",
    "camera_pose_errors",
    "gcp_errors",
    "summarize_errors",
]
