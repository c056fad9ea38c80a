"""Error diagnostics for a parameter model.

All functions are read-only with respect to the model.
"""

from typing import Any, Dict, List, NamedTuple

import numpy as np

from ..math.quaternions import quat_to_axis_angle
from .parameter_model import ParameterModel


class ObservationError(NamedTuple):
    """Pixel error magnitude of one measure."""

    point_index: int
    measure_index: int
    camera_index: int
    error: float


def observation_errors(model: ParameterModel) -> List[ObservationError]:
    """Pixel error of every observation, in network order."""
    errors = []
    for obs in model.observations:
        pixel_error = obs.pixel - model.projected_pixel(obs)
        errors.append(ObservationError(
            obs.point_index, obs.measure_index, obs.camera_index, float(np.linalg.norm(pixel_error))
        ))
    return errors


def image_errors(model: ParameterModel) -> np.ndarray:
    """Distance between observed and projected pixel for every observation."""
    return np.array([e.error for e in observation_errors(model)], dtype=float)


def camera_position_errors(model: ParameterModel) -> np.ndarray:
    """Distance between current and prior translation correction per camera."""
    return np.array([
        np.linalg.norm(model.camera_target(j)[:3] - model.camera_parameters(j)[:3])
        for j in range(model.num_cameras())
    ], dtype=float)


def camera_pose_errors(model: ParameterModel) -> np.ndarray:
    """Absolute difference of prior and current rotation angles per camera, in degrees."""
    errors = []
    for j in range(model.num_cameras()):
        _, angle_initial = quat_to_axis_angle(model.pose_correction(model.camera_target(j)))
        _, angle_now = quat_to_axis_angle(model.pose_correction(model.camera_parameters(j)))
        errors.append(abs(angle_initial - angle_now) * 180.0 / np.pi)
    return np.array(errors, dtype=float)


def gcp_errors(model: ParameterModel) -> np.ndarray:
    """Distance between current and prior position for ground control points only."""
    return np.array([
        np.linalg.norm(model.point_target(i) - model.point_parameters(i))
        for i in range(model.num_points())
        if model.is_ground_control(i)
    ], dtype=float)


def _stats(values: np.ndarray) -> Dict[str, float]:
    if values.size == 0:
        return {"count": 0, "mean": 0.0, "std": 0.0, "max": 0.0}
    return {
        "count": int(values.size),
        "mean": float(np.mean(values)),
        "std": float(np.std(values)),
        "max": float(np.max(values)),
    }


def summarize_errors(model: ParameterModel) -> Dict[str, Any]:
    """Summary statistics of every error kind."""
    return {
        "pixel": _stats(image_errors(model)),
        "camera_position": _stats(camera_position_errors(model)),
        "camera_pose_degrees": _stats(camera_pose_errors(model)),
        "gcp": _stats(gcp_errors(model)),
    }
