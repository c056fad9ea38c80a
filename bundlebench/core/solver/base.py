"""Levenberg-Marquardt bundle adjuster base class.

The unknowns are stacked as ``[a_0, ..., a_{m-1}, b_0, ..., b_{n-1}]``.
Each ``update`` linearizes the reprojection errors with finite-difference
Jacobians of the model's projection function, adds the camera and point
priors, damps the normal equations with ``lambda`` and takes one step.
Subclasses decide how the normal equations are stored and solved and how
observations are weighted.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

import numpy as np

from ..math.jacobians import split_jacobian
from ..math.robust import l2_loss
from ..optimization.parameter_model import ParameterModel, CAMERA_PARAMS, POINT_PARAMS

if TYPE_CHECKING:
    from .reporting import BundleAdjustReport

logger = logging.getLogger(__name__)

LossFunction = Callable[[np.ndarray], Tuple[np.ndarray, np.ndarray]]


class NormalEquations:
    """Sparse triplet accumulator for the damped normal equations."""

    def __init__(self, size: int):
        self.size = size
        self.rhs = np.zeros(size)
        self._rows: List[np.ndarray] = []
        self._cols: List[np.ndarray] = []
        self._values: List[np.ndarray] = []

    def add_block(self, row: int, col: int, block: np.ndarray) -> None:
        rows, cols = np.meshgrid(
            np.arange(row, row + block.shape[0]),
            np.arange(col, col + block.shape[1]),
            indexing="ij"
        )
        self._rows.append(rows.ravel())
        self._cols.append(cols.ravel())
        self._values.append(block.ravel())

    def add_diagonal(self, value: float) -> None:
        index = np.arange(self.size)
        self._rows.append(index)
        self._cols.append(index)
        self._values.append(np.full(self.size, value))

    def triplets(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        if not self._values:
            empty = np.zeros(0, dtype=int)
            return empty, empty, np.zeros(0)
        return np.concatenate(self._rows), np.concatenate(self._cols), np.concatenate(self._values)


class BundleAdjusterBase(ABC):
    """Common contract and Levenberg-Marquardt step for all strategies."""

    name = "base"
    DEFAULT_LAMBDA = 1e-3

    def __init__(self, model: ParameterModel):
        """Initialize adjuster.

        Args:
            model: Parameter model updated in place by ``update``
        """
        self.model = model
        self.lambda_ = self.DEFAULT_LAMBDA
        self.control = 0
        self.abs_tolerance = 1e10
        self.rel_tolerance = 1e10
        self.last_cost: Optional[float] = None
        self._nu = 2.0
        self._iterations = 0

    @property
    def iterations(self) -> int:
        """Number of ``update`` calls so far, accepted or not."""
        return self._iterations

    def set_lambda(self, value: float) -> None:
        if value <= 0:
            raise ValueError(f"lambda must be positive, got {value}")
        self.lambda_ = float(value)

    def set_control(self, control: int) -> None:
        """Select the lambda update rule: 0 scales by ten, 1 uses Nielsen's gain-ratio rule."""
        if control not in (0, 1):
            raise ValueError(f"Control must be 0 or 1, got {control}")
        self.control = control

    @abstractmethod
    def _solve_normal_equations(self, equations: NormalEquations) -> Optional[np.ndarray]:
        """Solve the damped system; return None if it is singular."""

    def _make_loss(self, errors: np.ndarray) -> LossFunction:
        """Loss applied to per-observation error magnitudes during one update."""
        return l2_loss

    def _residuals(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Observed minus projected pixel for every observation, shape (K, 2)."""
        model = self.model
        if not model.observations:
            return np.zeros((0, 2))
        return np.array([
            obs.pixel - model.project(obs.point_index, obs.camera_index, a[obs.camera_index], b[obs.point_index])
            for obs in model.observations
        ])

    def _cost(
        self, a: np.ndarray, b: np.ndarray, residuals: np.ndarray, loss: LossFunction, valid: np.ndarray
    ) -> float:
        """Weighted reprojection cost of the ``valid`` observations plus prior penalties."""
        model = self.model
        rho, _ = loss(np.linalg.norm(residuals[valid], axis=1))
        cost = 2.0 * float(np.sum(rho))
        for j in range(model.num_cameras()):
            d = a[j] - model.camera_target(j)
            cost += float(d @ model.camera_precision(j) @ d)
        for i in range(model.num_points()):
            if model.is_ground_control(i):
                d = b[i] - model.point_target(i)
                cost += float(d @ model.point_precision(i) @ d)
        return cost

    def _build_normal_equations(
        self, a: np.ndarray, b: np.ndarray, residuals: np.ndarray, weights: np.ndarray
    ) -> NormalEquations:
        model = self.model
        m = model.num_cameras()
        point_offset = CAMERA_PARAMS * m
        equations = NormalEquations(point_offset + POINT_PARAMS * model.num_points())

        for k, obs in enumerate(model.observations):
            i, j = obs.point_index, obs.camera_index
            J_a, J_b = split_jacobian(
                lambda a_j, b_i, i=i, j=j: model.project(i, j, a_j, b_i), a[j], b[i]
            )
            if not (np.all(np.isfinite(J_a)) and np.all(np.isfinite(J_b)) and np.all(np.isfinite(residuals[k]))):
                logger.debug(f"Skipping observation of point {i} in camera {j}: projection is not finite")
                continue

            w = weights[k]
            ca, cb = CAMERA_PARAMS * j, point_offset + POINT_PARAMS * i
            equations.add_block(ca, ca, w * J_a.T @ J_a)
            equations.add_block(ca, cb, w * J_a.T @ J_b)
            equations.add_block(cb, ca, w * J_b.T @ J_a)
            equations.add_block(cb, cb, w * J_b.T @ J_b)
            equations.rhs[ca:ca + CAMERA_PARAMS] += w * J_a.T @ residuals[k]
            equations.rhs[cb:cb + POINT_PARAMS] += w * J_b.T @ residuals[k]

        for j in range(m):
            precision = model.camera_precision(j)
            c = CAMERA_PARAMS * j
            equations.add_block(c, c, precision)
            equations.rhs[c:c + CAMERA_PARAMS] -= precision @ (a[j] - model.camera_target(j))

        for i in range(model.num_points()):
            if not model.is_ground_control(i):
                continue
            precision = model.point_precision(i)
            c = point_offset + POINT_PARAMS * i
            equations.add_block(c, c, precision)
            equations.rhs[c:c + POINT_PARAMS] -= precision @ (b[i] - model.point_target(i))

        equations.add_diagonal(self.lambda_)
        return equations

    def update(self) -> float:
        """Run one Levenberg-Marquardt iteration.

        Returns:
            Norm of the attempted step. Zero means no change is possible.
            ``abs_tolerance`` and ``rel_tolerance`` are refreshed when the
            step is accepted.
        """
        self._iterations += 1
        model = self.model
        m = model.num_cameras()
        a = model.camera_parameter_array()
        b = model.point_parameter_array()

        residuals = self._residuals(a, b)
        # Observations that do not project (e.g. behind the camera) take no part in this step
        valid = np.all(np.isfinite(residuals), axis=1)
        errors = np.linalg.norm(residuals, axis=1)
        loss = self._make_loss(errors[valid])
        weights = np.zeros(len(errors))
        weights[valid] = loss(errors[valid])[1]
        old_cost = self._cost(a, b, residuals, loss, valid)

        equations = self._build_normal_equations(a, b, residuals, weights)
        delta = self._solve_normal_equations(equations)
        if delta is None or not np.all(np.isfinite(delta)):
            logger.warning(f"{self.name}: singular normal equations at iteration {self._iterations}")
            self._reject()
            return float("inf")

        step = float(np.linalg.norm(delta))
        if step == 0.0:
            self.last_cost = old_cost
            return 0.0

        a_new = a + delta[:CAMERA_PARAMS * m].reshape(m, CAMERA_PARAMS)
        b_new = b + delta[CAMERA_PARAMS * m:].reshape(-1, POINT_PARAMS)
        new_residuals = self._residuals(a_new, b_new)
        if np.all(np.isfinite(new_residuals[valid])):
            new_cost = self._cost(a_new, b_new, new_residuals, loss, valid)
        else:
            # A step may not push a projecting observation out of view
            new_cost = float("inf")

        if new_cost < old_cost:
            predicted = float(delta @ (self.lambda_ * delta + equations.rhs))
            for j in range(m):
                model.set_camera_parameters(j, a_new[j])
            for i in range(model.num_points()):
                model.set_point_parameters(i, b_new[i])
            self.abs_tolerance = new_cost
            self.rel_tolerance = old_cost - new_cost
            self.last_cost = new_cost
            self._accept((old_cost - new_cost) / predicted if predicted > 0 else 0.0)
            logger.debug(
                f"{self.name} iteration {self._iterations}: cost {old_cost:.6g} -> {new_cost:.6g}, "
                f"lambda {self.lambda_:.3g}"
            )
        else:
            self.last_cost = old_cost
            self._reject()
            logger.debug(
                f"{self.name} iteration {self._iterations}: rejected step "
                f"(cost {new_cost:.6g} >= {old_cost:.6g}), lambda {self.lambda_:.3g}"
            )

        return step

    def _accept(self, gain_ratio: float) -> None:
        if self.control == 0:
            self.lambda_ /= 10.0
        else:
            self.lambda_ *= max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
            self._nu = 2.0

    def _reject(self) -> None:
        if self.control == 0:
            self.lambda_ *= 10.0
        else:
            self.lambda_ *= self._nu
            self._nu *= 2.0

    def finalize(self, reporter: Optional["BundleAdjustReport"] = None):
        """Close the run; the reporter may write the per-observation error report.

        Returns:
            Path of the error report, or None if none was written
        """
        logger.info(f"{self.name}: finished after {self._iterations} iterations, cost {self.last_cost}")
        if reporter is None:
            return None
        return reporter.finish(self.model, self)
