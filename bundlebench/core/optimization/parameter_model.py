"""Parameter store for bundle adjustment.

Each camera j carries a 6-vector ``a_j = [tx, ty, tz, ex, ey, ez]``: a
translation correction followed by a rotation correction given as Euler
angles applied in ``EULER_SEQUENCE`` order. Each control point i carries its
3D position ``b_i``. Both have a fixed prior (target) set at construction:
zero corrections for cameras and the control-network positions for points.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ...exceptions import ModelIntegrityError
from ..math.quaternions import euler_to_quaternion, euler_to_matrix
from ..models.entities import AdjustedCamera, PinholeCamera
from ..models.network import ControlNetwork

logger = logging.getLogger(__name__)

CAMERA_PARAMS = 6
POINT_PARAMS = 3
EULER_SEQUENCE = "xyz"


@dataclass(frozen=True)
class Observation:
    """One pixel measurement of point ``point_index`` by camera ``camera_index``."""

    point_index: int
    measure_index: int
    camera_index: int
    pixel: np.ndarray


class ParameterModel:
    """Camera and point parameters, their priors, and regularization weights.

    A model is bound to one control network for its whole life. Parameters
    are mutated in place by a solver through the setters; priors never change.
    """

    def __init__(
        self,
        cameras: Sequence[PinholeCamera],
        network: ControlNetwork,
        camera_position_sigma: float,
        camera_pose_sigma: float,
        gcp_sigma: float
    ):
        """Initialize the model.

        Args:
            cameras: Base camera models; camera index j is ``cameras[j]``
            network: Control network providing points and observations
            camera_position_sigma: Constraint on camera position corrections
            camera_pose_sigma: Constraint on camera pose corrections
            gcp_sigma: Constraint on ground control point positions

        Raises:
            ModelIntegrityError: if a measure references a camera index
                outside ``[0, len(cameras))``
        """
        self._cameras = list(cameras)
        self._network = network
        self._camera_position_sigma = float(camera_position_sigma)
        self._camera_pose_sigma = float(camera_pose_sigma)
        self._gcp_sigma = float(gcp_sigma)

        camera_count = len(self._cameras)
        observations = []
        for i, m, camera_index, pixel in network.iter_measures():
            if not 0 <= camera_index < camera_count:
                raise ModelIntegrityError(
                    f"Invalid control point {network.points[i].id!r}: measure {m} has "
                    f"image id {camera_index}, but only {camera_count} cameras were given"
                )
            observations.append(Observation(i, m, camera_index, pixel))
        self._observations: Tuple[Observation, ...] = tuple(observations)

        # Camera corrections and their targets start at zero
        self._a = np.zeros((camera_count, CAMERA_PARAMS))
        self._a_target = np.zeros((camera_count, CAMERA_PARAMS))
        self._a_target.setflags(write=False)

        # Points and their targets start at the network positions
        positions = np.array(
            [point.position for point in network.points], dtype=float
        ).reshape(-1, POINT_PARAMS)
        self._b = positions.copy()
        self._b_target = positions.copy()
        self._b_target.setflags(write=False)

        self._is_gcp = np.array([point.is_ground_control() for point in network.points], dtype=bool)

        logger.debug(
            f"Parameter model: {camera_count} cameras, {self.num_points()} points, "
            f"{self.num_pixel_observations()} observations"
        )

    # Sizes and collaborators

    def num_cameras(self) -> int:
        return len(self._a)

    def num_points(self) -> int:
        return len(self._b)

    def num_pixel_observations(self) -> int:
        return len(self._observations)

    @property
    def observations(self) -> Tuple[Observation, ...]:
        return self._observations

    @property
    def cameras(self) -> List[PinholeCamera]:
        return list(self._cameras)

    @property
    def network(self) -> ControlNetwork:
        return self._network

    @property
    def sigmas(self) -> Tuple[float, float, float]:
        """(camera position, camera pose, ground control) sigmas."""
        return self._camera_position_sigma, self._camera_pose_sigma, self._gcp_sigma

    def is_ground_control(self, i: int) -> bool:
        return bool(self._is_gcp[i])

    # Parameter access

    def camera_parameters(self, j: int) -> np.ndarray:
        return self._a[j].copy()

    def camera_target(self, j: int) -> np.ndarray:
        return self._a_target[j].copy()

    def set_camera_parameters(self, j: int, a_j: np.ndarray) -> None:
        a_j = np.asarray(a_j, dtype=float)
        if a_j.shape != (CAMERA_PARAMS,):
            raise ValueError(f"Camera parameters must have shape ({CAMERA_PARAMS},), got {a_j.shape}")
        self._a[j] = a_j

    def point_parameters(self, i: int) -> np.ndarray:
        return self._b[i].copy()

    def point_target(self, i: int) -> np.ndarray:
        return self._b_target[i].copy()

    def set_point_parameters(self, i: int, b_i: np.ndarray) -> None:
        b_i = np.asarray(b_i, dtype=float)
        if b_i.shape != (POINT_PARAMS,):
            raise ValueError(f"Point parameters must have shape ({POINT_PARAMS},), got {b_i.shape}")
        self._b[i] = b_i

    def camera_parameter_array(self) -> np.ndarray:
        """All camera parameters, one row per camera (copy)."""
        return self._a.copy()

    def point_parameter_array(self) -> np.ndarray:
        """All point positions, one row per point (copy)."""
        return self._b.copy()

    # Regularization. Recomputed from the sigmas on every call.

    def camera_precision(self, j: int) -> np.ndarray:
        """6x6 diagonal inverse covariance of camera j's corrections."""
        position = 1.0 / self._camera_position_sigma**2
        pose = 1.0 / self._camera_pose_sigma**2
        return np.diag([position, position, position, pose, pose, pose])

    def point_precision(self, i: int) -> np.ndarray:
        """3x3 diagonal inverse covariance of point i; zero for free points."""
        if not self._is_gcp[i]:
            return np.zeros((POINT_PARAMS, POINT_PARAMS))
        return np.eye(POINT_PARAMS) / self._gcp_sigma**2

    # Projection

    def pose_correction(self, a_j: np.ndarray) -> np.ndarray:
        """Unit quaternion for the rotation part of a camera parameter vector."""
        return euler_to_quaternion(np.asarray(a_j, dtype=float)[3:6], EULER_SEQUENCE)

    def project(self, i: int, j: int, a_j: np.ndarray, b_i: np.ndarray) -> np.ndarray:
        """Pixel of point ``b_i`` seen by camera j corrected by ``a_j``.

        ``a_j`` and ``b_i`` are trial values and need not be the stored
        parameters; the model is not modified.
        """
        a_j = np.asarray(a_j, dtype=float)
        camera = self._cameras[j]
        base_center = camera.camera_center()
        rotation = euler_to_matrix(a_j[3:6], EULER_SEQUENCE)
        offset = np.asarray(b_i, dtype=float) - base_center - a_j[:3]
        return camera.point_to_pixel(rotation.T @ offset + base_center)

    def projected_pixel(self, observation: Observation) -> np.ndarray:
        """Projection of an observation using the current parameters."""
        i, j = observation.point_index, observation.camera_index
        return self.project(i, j, self._a[j], self._b[i])

    def adjusted_camera(self, j: int) -> AdjustedCamera:
        return AdjustedCamera(self._cameras[j], self._a[j, :3].copy(), self.pose_correction(self._a[j]))

    def adjusted_cameras(self) -> List[AdjustedCamera]:
        return [self.adjusted_camera(j) for j in range(self.num_cameras())]
