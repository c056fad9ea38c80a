"""Finite-difference Jacobians."""

import numpy as np
from typing import Callable


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-6
) -> np.ndarray:
    """Compute Jacobian using central differences.

    Args:
        func: Function that takes x and returns a vector
        x: Input parameters
        h: Step size for finite differences

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x))

    m, n = len(f0), len(x)
    J = np.zeros((m, n))

    for j in range(n):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[j] += h
        x_minus[j] -= h
        J[:, j] = (func(x_plus) - func(x_minus)) / (2 * h)

    return J


def split_jacobian(
    func: Callable[[np.ndarray, np.ndarray], np.ndarray],
    a: np.ndarray,
    b: np.ndarray,
    h: float = 1e-6
):
    """Jacobians of ``func(a, b)`` with respect to ``a`` and ``b`` separately.

    Returns:
        Tuple (J_a, J_b)
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    J_a = finite_difference_jacobian(lambda x: func(x, b), a, h)
    J_b = finite_difference_jacobian(lambda x: func(a, x), b, h)
    return J_a, J_b
