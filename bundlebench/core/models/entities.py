"""Core entities: PinholeCamera, AdjustedCamera, ControlMeasure, ControlPoint."""

from enum import Enum
from typing import Optional, List
import numpy as np
from pydantic import BaseModel, Field, field_validator

from ..math.camera import project
from ..math.quaternions import quat_to_matrix, quat_normalize


class PinholeCamera(BaseModel):
    """Pinhole camera with TSAI lens distortion.

    - C: camera center in world coordinates
    - R: camera-to-world rotation, row-major (9 values)
    - fu, fv, cu, cv: focal lengths and principal point in pixels
    - k1, k2, p1, p2: radial and tangential distortion
    """

    C: List[float] = Field(description="Camera center [x, y, z]", min_length=3, max_length=3)
    R: List[float] = Field(
        default_factory=lambda: [1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0],
        description="Camera-to-world rotation matrix, row-major",
        min_length=9,
        max_length=9
    )
    fu: float = Field(gt=0, description="Focal length along u in pixels")
    fv: float = Field(gt=0, description="Focal length along v in pixels")
    cu: float = Field(description="Principal point u in pixels")
    cv: float = Field(description="Principal point v in pixels")
    k1: float = 0.0
    k2: float = 0.0
    p1: float = 0.0
    p2: float = 0.0
    source_path: Optional[str] = Field(default=None, description="File the camera was read from")

    @field_validator('R')
    @classmethod
    def validate_R(cls, v):
        R = np.array(v, dtype=float).reshape(3, 3)
        if not np.allclose(R @ R.T, np.eye(3), atol=1e-6):
            raise ValueError("R must be an orthonormal rotation matrix")
        return v

    def camera_center(self) -> np.ndarray:
        """Camera center in world coordinates."""
        return np.array(self.C, dtype=float)

    def camera_pose(self) -> np.ndarray:
        """Camera-to-world rotation matrix."""
        return np.array(self.R, dtype=float).reshape(3, 3)

    def get_intrinsics(self) -> np.ndarray:
        return np.array([self.fu, self.fv, self.cu, self.cv])

    def get_distortion(self) -> np.ndarray:
        return np.array([self.k1, self.k2, self.p1, self.p2])

    def point_to_pixel(self, X: np.ndarray) -> np.ndarray:
        """Project a world point to a pixel [u, v]."""
        R_wc = self.camera_pose().T
        t = -R_wc @ self.camera_center()
        uv = project(self.get_intrinsics(), R_wc, t, np.asarray(X, dtype=float), self.get_distortion())
        return uv[0]


class AdjustedCamera:
    """A base camera with a translation and rotation correction applied.

    The corrected center is ``base center + translation`` and the corrected
    pose is ``rotation * base pose``.
    """

    def __init__(self, base: PinholeCamera, translation: np.ndarray, rotation: np.ndarray):
        """Initialize adjusted camera.

        Args:
            base: Camera being corrected
            translation: 3-element position correction
            rotation: Unit quaternion [w, x, y, z] pose correction
        """
        self.base = base
        self.translation = np.asarray(translation, dtype=float)
        self.rotation = quat_normalize(np.asarray(rotation, dtype=float))
        self._rotation_matrix = quat_to_matrix(self.rotation)

    def camera_center(self) -> np.ndarray:
        return self.base.camera_center() + self.translation

    def camera_pose(self) -> np.ndarray:
        return self._rotation_matrix @ self.base.camera_pose()

    def point_to_pixel(self, X: np.ndarray) -> np.ndarray:
        """Project a world point through the corrected camera."""
        base_center = self.base.camera_center()
        offset = np.asarray(X, dtype=float) - base_center - self.translation
        return self.base.point_to_pixel(self._rotation_matrix.T @ offset + base_center)


class PointType(str, Enum):
    """Classification of a control point."""

    FREE = "free"
    GROUND_CONTROL = "ground_control"


class ControlMeasure(BaseModel):
    """A pixel observation of a control point in one image."""

    image_id: int = Field(description="Index of the observing camera")
    pixel: List[float] = Field(description="Measured pixel [u, v]", min_length=2, max_length=2)

    def to_numpy(self) -> np.ndarray:
        return np.array(self.pixel, dtype=float)


class ControlPoint(BaseModel):
    """3D point with its image measurements."""

    id: str = Field(description="Identifier of the control point")
    type: PointType = Field(default=PointType.FREE)
    position: List[float] = Field(description="3D position [x, y, z]", min_length=3, max_length=3)
    measures: List[ControlMeasure] = Field(default_factory=list)

    def to_numpy(self) -> np.ndarray:
        """Convert position to numpy array."""
        return np.array(self.position, dtype=float)

    def is_ground_control(self) -> bool:
        return self.type == PointType.GROUND_CONTROL
