"""Quaternion and Euler-angle operations for 3D rotations.

Quaternions are scalar-first unit quaternions ``[w, x, y, z]``.

Euler angles are always paired with an explicit axis sequence. For the
sequence ``"xyz"`` the angles ``(a, b, c)`` describe the rotation matrix
``Rx(a) @ Ry(b) @ Rz(c)``.
"""

import numpy as np
from typing import Tuple

_AXES = {
    "x": np.array([1.0, 0.0, 0.0]),
    "y": np.array([0.0, 1.0, 0.0]),
    "z": np.array([0.0, 0.0, 1.0]),
}


def quat_normalize(q: np.ndarray) -> np.ndarray:
    """Normalize quaternion to unit length."""
    if q.shape != (4,):
        raise ValueError(f"Quaternion must be 4-element vector, got shape {q.shape}")

    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise ValueError("Cannot normalize zero quaternion")

    return q / norm


def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """Create quaternion from axis-angle representation.

    Args:
        axis: 3D rotation axis (normalized internally)
        angle: Rotation angle in radians

    Returns:
        Unit quaternion [w, x, y, z]
    """
    if axis.shape != (3,):
        raise ValueError(f"Axis must be 3-element vector, got shape {axis.shape}")

    axis_norm = np.linalg.norm(axis)
    if axis_norm < 1e-12:
        return np.array([1.0, 0.0, 0.0, 0.0])

    axis = axis / axis_norm
    half_angle = angle / 2
    sin_half = np.sin(half_angle)

    return np.array([np.cos(half_angle), sin_half * axis[0], sin_half * axis[1], sin_half * axis[2]])


def quat_to_axis_angle(q: np.ndarray) -> Tuple[np.ndarray, float]:
    """Decompose a quaternion into a unit axis and an angle in [0, pi].

    The identity rotation returns the x axis with a zero angle.
    """
    q = quat_normalize(q)
    if q[0] < 0:
        q = -q

    sin_half = np.linalg.norm(q[1:])
    angle = 2.0 * np.arctan2(sin_half, q[0])
    if sin_half < 1e-12:
        return np.array([1.0, 0.0, 0.0]), float(angle)

    return q[1:] / sin_half, float(angle)


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    """Convert quaternion to rotation matrix.

    Args:
        q: Quaternion [w, x, y, z] (normalized internally)

    Returns:
        3x3 rotation matrix
    """
    if q.shape != (4,):
        raise ValueError(f"Quaternion must be 4-element vector, got shape {q.shape}")

    w, x, y, z = quat_normalize(q)

    return np.array([
        [1 - 2*(y**2 + z**2), 2*(x*y - w*z), 2*(x*z + w*y)],
        [2*(x*y + w*z), 1 - 2*(x**2 + z**2), 2*(y*z - w*x)],
        [2*(x*z - w*y), 2*(y*z + w*x), 1 - 2*(x**2 + y**2)]
    ])


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Multiply two quaternions (rotation q2 followed by q1)."""
    if q1.shape != (4,) or q2.shape != (4,):
        raise ValueError("Both quaternions must be 4-element vectors")

    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2

    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2
    ])


def euler_to_quaternion(angles: np.ndarray, sequence: str = "xyz") -> np.ndarray:
    """Build a quaternion from three Euler angles applied in ``sequence`` order.

    Args:
        angles: Three angles in radians, one per letter of ``sequence``
        sequence: Axis order, e.g. "xyz"

    Returns:
        Unit quaternion [w, x, y, z]
    """
    angles = np.asarray(angles, dtype=float)
    if angles.shape != (3,):
        raise ValueError(f"Euler angles must be 3-element vector, got shape {angles.shape}")
    if len(sequence) != 3 or any(axis not in _AXES for axis in sequence.lower()):
        raise ValueError(f"Invalid Euler axis sequence: {sequence!r}")

    q = np.array([1.0, 0.0, 0.0, 0.0])
    for axis, angle in zip(sequence.lower(), angles):
        q = quat_multiply(q, quat_from_axis_angle(_AXES[axis], angle))

    return quat_normalize(q)


def euler_to_matrix(angles: np.ndarray, sequence: str = "xyz") -> np.ndarray:
    """Rotation matrix for Euler angles applied in ``sequence`` order."""
    return quat_to_matrix(euler_to_quaternion(angles, sequence))


def matrix_to_euler_xyz(R: np.ndarray) -> np.ndarray:
    """Recover ``(a, b, c)`` such that ``R == Rx(a) @ Ry(b) @ Rz(c)``."""
    if R.shape != (3, 3):
        raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")

    b = np.arcsin(np.clip(R[0, 2], -1.0, 1.0))
    if abs(R[0, 2]) < 1.0 - 1e-12:
        a = np.arctan2(-R[1, 2], R[2, 2])
        c = np.arctan2(-R[0, 1], R[0, 0])
    else:
        # Gimbal lock: only a +/- c is observable, put it all in a
        a = np.arctan2(R[2, 1], R[1, 1])
        c = 0.0

    return np.array([a, b, c])
