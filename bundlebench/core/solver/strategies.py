"""The six bundle adjustment strategies and the factory that selects one."""

import logging
import warnings
from functools import partial
from typing import Callable, Dict, Optional

import numpy as np
import scipy.linalg
from scipy.sparse import coo_matrix
from scipy.sparse.linalg import spsolve, MatrixRankWarning

from ..math.robust import huber_loss, cauchy_loss, l2_loss, robust_scale_estimate
from ..models.settings import AdjustmentSettings, AdjustmentType
from ..optimization.parameter_model import ParameterModel
from .base import BundleAdjusterBase, LossFunction, NormalEquations

logger = logging.getLogger(__name__)


class DenseAdjuster(BundleAdjusterBase):
    """Solves the full normal matrix as a dense system."""

    def _solve_normal_equations(self, equations: NormalEquations) -> Optional[np.ndarray]:
        if equations.size == 0:
            return np.zeros(0)
        rows, cols, values = equations.triplets()
        H = np.zeros((equations.size, equations.size))
        np.add.at(H, (rows, cols), values)
        # Tight sigmas put 1/sigma^2 on the diagonal; the conditioning warning is expected
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", scipy.linalg.LinAlgWarning)
            try:
                return scipy.linalg.solve(H, equations.rhs)
            except np.linalg.LinAlgError:
                return None


class SparseAdjuster(BundleAdjusterBase):
    """Solves the normal equations in compressed sparse column form."""

    def _solve_normal_equations(self, equations: NormalEquations) -> Optional[np.ndarray]:
        if equations.size == 0:
            return np.zeros(0)
        rows, cols, values = equations.triplets()
        # duplicate entries are summed on conversion
        H = coo_matrix((values, (rows, cols)), shape=(equations.size, equations.size)).tocsc()
        with warnings.catch_warnings():
            warnings.simplefilter("error", MatrixRankWarning)
            try:
                return np.atleast_1d(spsolve(H, equations.rhs))
            except MatrixRankWarning:
                return None


def reweighting_loss(errors: np.ndarray) -> LossFunction:
    """Cauchy reweighting with its scale taken from the median absolute deviation of ``errors``."""
    scale = robust_scale_estimate(errors)
    if scale < 1e-12:
        return l2_loss
    return partial(cauchy_loss, sigma=scale)


class AdjustRef(DenseAdjuster):
    """Reference implementation: dense system, squared loss."""

    name = "ref"


class AdjustSparse(SparseAdjuster):
    """Sparse system, squared loss."""

    name = "sparse"


class AdjustSparseHuber(SparseAdjuster):
    """Sparse system with a Huber loss on pixel errors."""

    name = "sparse_huber"

    def __init__(self, model: ParameterModel, huber_param: float):
        super().__init__(model)
        self.huber_param = huber_param

    def _make_loss(self, errors: np.ndarray) -> LossFunction:
        return partial(huber_loss, delta=self.huber_param)


class AdjustSparseCauchy(SparseAdjuster):
    """Sparse system with a Cauchy loss on pixel errors."""

    name = "sparse_cauchy"

    def __init__(self, model: ParameterModel, cauchy_param: float):
        super().__init__(model)
        self.cauchy_param = cauchy_param

    def _make_loss(self, errors: np.ndarray) -> LossFunction:
        return partial(cauchy_loss, sigma=self.cauchy_param)


class AdjustRobustRef(DenseAdjuster):
    """Dense system, iteratively reweighted from the current error distribution."""

    name = "robust_ref"

    def _make_loss(self, errors: np.ndarray) -> LossFunction:
        return reweighting_loss(errors)


class AdjustRobustSparse(SparseAdjuster):
    """Sparse system, iteratively reweighted from the current error distribution."""

    name = "robust_sparse"

    def _make_loss(self, errors: np.ndarray) -> LossFunction:
        return reweighting_loss(errors)


ADJUSTERS: Dict[AdjustmentType, Callable[[ParameterModel, AdjustmentSettings], BundleAdjusterBase]] = {
    AdjustmentType.REF: lambda model, settings: AdjustRef(model),
    AdjustmentType.SPARSE: lambda model, settings: AdjustSparse(model),
    AdjustmentType.SPARSE_HUBER: lambda model, settings: AdjustSparseHuber(model, settings.huber_param),
    AdjustmentType.SPARSE_CAUCHY: lambda model, settings: AdjustSparseCauchy(model, settings.cauchy_param),
    AdjustmentType.ROBUST_REF: lambda model, settings: AdjustRobustRef(model),
    AdjustmentType.ROBUST_SPARSE: lambda model, settings: AdjustRobustSparse(model),
}


def make_adjuster(model: ParameterModel, settings: AdjustmentSettings) -> BundleAdjusterBase:
    """Build the configured strategy for ``model`` with lambda and control applied."""
    adjuster = ADJUSTERS[settings.adjustment_type](model, settings)
    if settings.lambda_ is not None:
        adjuster.set_lambda(settings.lambda_)
    adjuster.set_control(settings.control)
    logger.debug(f"Using {settings.adjustment_type.label} bundle adjustment")
    return adjuster
