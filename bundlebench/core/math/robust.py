"""Loss functions used to weight reprojection errors."""

import numpy as np
from typing import Tuple


def huber_loss(residual: np.ndarray, delta: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Huber robust loss function.

    Args:
        residual: Residual values
        delta: Threshold parameter

    Returns:
        Tuple of (rho, weights) where rho is robustified residual, weights for Jacobian scaling
    """
    abs_residual = np.abs(residual)
    is_inlier = abs_residual <= delta

    rho = np.where(
        is_inlier,
        0.5 * residual**2,
        delta * (abs_residual - 0.5 * delta)
    )

    # d(rho)/d(residual) / residual
    with np.errstate(divide="ignore", invalid="ignore"):
        weights = np.where(is_inlier, 1.0, delta / abs_residual)
    weights = np.where(abs_residual < 1e-12, 1.0, weights)

    return rho, weights


def cauchy_loss(residual: np.ndarray, sigma: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Cauchy robust loss function.

    Args:
        residual: Residual values
        sigma: Scale parameter

    Returns:
        Tuple of (rho, weights) where rho is robustified residual, weights for Jacobian scaling
    """
    sigma2 = sigma**2
    r2_over_sigma2 = residual**2 / sigma2

    rho = 0.5 * sigma2 * np.log1p(r2_over_sigma2)
    weights = 1.0 / (1 + r2_over_sigma2)

    return rho, weights


def l2_loss(residual: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Squared loss: rho = 0.5 * residual^2 with unit weights."""
    rho = 0.5 * residual**2
    weights = np.ones_like(residual, dtype=float)
    return rho, weights


def robust_scale_estimate(residuals: np.ndarray) -> float:
    """Estimate the scale of ``residuals`` from their median absolute deviation.

    Args:
        residuals: Array of residual values

    Returns:
        Estimated scale parameter
    """
    residuals = np.asarray(residuals, dtype=float)
    if residuals.size == 0:
        return 0.0

    median_residual = np.median(residuals)
    mad = np.median(np.abs(residuals - median_residual))
    return float(1.4826 * mad)  # approximates a standard deviation
