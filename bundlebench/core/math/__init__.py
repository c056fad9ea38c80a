"""Math primitives for bundlebench."""

from .quaternions import (
    quat_normalize,
    quat_from_axis_angle,
    quat_to_axis_angle,
    quat_to_matrix,
    quat_multiply,
    euler_to_quaternion,
    euler_to_matrix,
    matrix_to_euler_xyz,
)
from .camera import project, point_depth
from .robust import huber_loss, cauchy_loss, l2_loss, robust_scale_estimate
from .jacobians import finite_difference_jacobian, split_jacobian

__all__ = [
    "quat_normalize",
    "quat_from_axis_angle",
    "quat_to_axis_angle",
    "quat_to_matrix",
    "quat_multiply",
    "euler_to_quaternion",
    "euler_to_matrix",
    "matrix_to_euler_xyz",
    "project",
    "point_depth",
    "huber_loss",
    "cauchy_loss",
    "l2_loss",
    "robust_scale_estimate",
    "finite_difference_jacobian",
    "split_jacobian",
]
