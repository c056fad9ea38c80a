"""Pinhole camera projection with TSAI lens distortion."""

import numpy as np
from typing import Optional


def project(
    K: np.ndarray,
    R: np.ndarray,
    t: np.ndarray,
    X: np.ndarray,
    distortion: Optional[np.ndarray] = None
) -> np.ndarray:
    """Project 3D points to pixel coordinates.

    Args:
        K: Camera intrinsics [fu, fv, cu, cv]
        R: 3x3 rotation matrix (world to camera)
        t: 3-element translation vector (world to camera)
        X: Nx3 array of 3D points in world coordinates
        distortion: Optional TSAI distortion [k1, k2, p1, p2]

    Returns:
        Nx2 array of pixel coordinates [u, v]; points at or behind the
        image plane project to NaN
    """
    if K.shape[0] < 4:
        raise ValueError(f"K must have at least 4 elements, got {K.shape}")
    if R.shape != (3, 3):
        raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")
    if t.shape != (3,):
        raise ValueError(f"t must be 3-element vector, got shape {t.shape}")

    X = np.atleast_2d(X)
    if X.shape[1] != 3:
        raise ValueError(f"X must be Nx3 array, got shape {X.shape}")

    # Transform to camera coordinates
    X_cam = (R @ X.T).T + t

    behind_camera = X_cam[:, 2] <= 1e-6
    if np.any(behind_camera):
        X_cam[behind_camera, 2] = np.nan

    x_norm = X_cam[:, 0] / X_cam[:, 2]
    y_norm = X_cam[:, 1] / X_cam[:, 2]

    if distortion is not None and np.any(distortion):
        x_norm, y_norm = apply_tsai_distortion(x_norm, y_norm, distortion)

    fu, fv, cu, cv = K[:4]
    u = fu * x_norm + cu
    v = fv * y_norm + cv

    return np.column_stack([u, v])


def apply_tsai_distortion(x: np.ndarray, y: np.ndarray, distortion: np.ndarray):
    """Apply radial (k1, k2) and tangential (p1, p2) distortion to normalized coordinates."""
    distortion = np.asarray(distortion, dtype=float)
    if distortion.shape != (4,):
        raise ValueError(f"distortion must be [k1, k2, p1, p2], got shape {distortion.shape}")

    k1, k2, p1, p2 = distortion
    r2 = x**2 + y**2
    radial = k1 * r2 + k2 * r2**2

    x_d = x + x * radial + 2 * p1 * x * y + p2 * (r2 + 2 * x**2)
    y_d = y + y * radial + p1 * (r2 + 2 * y**2) + 2 * p2 * x * y
    return x_d, y_d


def point_depth(R: np.ndarray, t: np.ndarray, X: np.ndarray) -> np.ndarray:
    """Get depth of 3D points relative to camera.

    Args:
        R: 3x3 rotation matrix (world to camera)
        t: 3-element translation vector (world to camera)
        X: Nx3 array of 3D points in world coordinates

    Returns:
        N-element array of depths (positive = in front of camera)
    """
    X = np.atleast_2d(X)
    X_cam = (R @ X.T).T + t
    return X_cam[:, 2]
