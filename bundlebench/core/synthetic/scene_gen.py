"""Synthetic scene generation utilities."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..math.camera import project, point_depth
from ..models.entities import ControlMeasure, ControlPoint, PinholeCamera, PointType
from ..models.network import ControlNetwork


@dataclass
class SyntheticScene:
    """Cameras and a control network generated from known true points."""

    cameras: List[PinholeCamera]
    network: ControlNetwork
    true_points: np.ndarray


class SceneGenerator:
    """Generator for synthetic scenes and test data."""

    def __init__(self, seed: Optional[int] = None):
        """Initialize scene generator.

        Args:
            seed: Random seed for reproducible generation
        """
        if seed is not None:
            np.random.seed(seed)

    def generate_points_box(
        self,
        bounds: Tuple[float, float, float, float, float, float],
        n_points: int
    ) -> np.ndarray:
        """Uniformly distributed points inside (xmin, xmax, ymin, ymax, zmin, zmax)."""
        xmin, xmax, ymin, ymax, zmin, zmax = bounds
        return np.column_stack([
            np.random.uniform(xmin, xmax, n_points),
            np.random.uniform(ymin, ymax, n_points),
            np.random.uniform(zmin, zmax, n_points),
        ])

    def generate_cameras_circle(
        self,
        center: np.ndarray,
        radius: float,
        n_cameras: int,
        look_at: np.ndarray,
        up: np.ndarray = np.array([0, 0, 1]),
        focal_length: float = 500.0,
        image_size: Tuple[int, int] = (640, 480)
    ) -> List[PinholeCamera]:
        """Generate cameras positioned on a circle looking at a target.

        Args:
            center: Center of the circle [x, y, z]
            radius: Radius of the circle
            n_cameras: Number of cameras to generate
            look_at: Point to look at [x, y, z]
            up: Up vector [x, y, z]
            focal_length: Camera focal length in pixels
            image_size: Image dimensions (width, height)

        Returns:
            List of PinholeCamera objects
        """
        cameras = []
        angles = np.linspace(0, 2 * np.pi, n_cameras, endpoint=False)

        for angle in angles:
            cam_pos = np.asarray(center, dtype=float) + radius * np.array([np.cos(angle), np.sin(angle), 0])

            z_cam = look_at - cam_pos  # forward
            z_cam = z_cam / np.linalg.norm(z_cam)

            x_cam = np.cross(z_cam, up)  # right
            x_cam = x_cam / np.linalg.norm(x_cam)

            y_cam = np.cross(z_cam, x_cam)  # down

            # Rows are the camera axes, so the transpose is camera-to-world
            R_wc = np.array([x_cam, y_cam, z_cam])

            cameras.append(PinholeCamera(
                C=cam_pos.tolist(),
                R=R_wc.T.ravel().tolist(),
                fu=focal_length,
                fv=focal_length,
                cu=image_size[0] / 2,
                cv=image_size[1] / 2,
            ))

        return cameras

    def generate_network(
        self,
        points: np.ndarray,
        cameras: Sequence[PinholeCamera],
        pixel_noise: float = 0.0,
        position_noise: float = 0.0,
        n_ground_control: int = 0,
        image_size: Tuple[int, int] = (640, 480),
        min_depth: float = 0.1
    ) -> ControlNetwork:
        """Project true points into every camera that sees them.

        Args:
            points: Nx3 true point positions
            cameras: Cameras to observe with
            pixel_noise: Standard deviation of Gaussian pixel noise
            position_noise: Standard deviation of the noise added to the
                free point positions stored in the network
            n_ground_control: Number of leading points marked as ground
                control; their stored positions are exact
            image_size: Image dimensions (width, height)
            min_depth: Minimum depth for a valid observation

        Returns:
            Control network with points that have at least one measure
        """
        network = ControlNetwork(name="synthetic")
        width, height = image_size

        for i, X in enumerate(np.atleast_2d(points)):
            measures = []
            for j, camera in enumerate(cameras):
                R_wc = camera.camera_pose().T
                t = -R_wc @ camera.camera_center()
                if point_depth(R_wc, t, X)[0] < min_depth:
                    continue
                u, v = project(camera.get_intrinsics(), R_wc, t, X, camera.get_distortion())[0]
                if not (0 <= u < width and 0 <= v < height):
                    continue
                if pixel_noise > 0:
                    u += np.random.normal(0, pixel_noise)
                    v += np.random.normal(0, pixel_noise)
                measures.append(ControlMeasure(image_id=j, pixel=[float(u), float(v)]))

            if not measures:
                continue

            is_gcp = i < n_ground_control
            position = np.array(X, dtype=float)
            if position_noise > 0 and not is_gcp:
                position = position + np.random.normal(0, position_noise, 3)

            network.add_point(ControlPoint(
                id=f"pt_{i:03d}",
                type=PointType.GROUND_CONTROL if is_gcp else PointType.FREE,
                position=position.tolist(),
                measures=measures,
            ))

        return network


def make_ring_scene(
    n_cameras: int = 4,
    n_points: int = 12,
    camera_radius: float = 6.0,
    camera_height: float = 1.0,
    pixel_noise: float = 0.0,
    position_noise: float = 0.0,
    n_ground_control: int = 0,
    seed: Optional[int] = None
) -> SyntheticScene:
    """Cameras on a ring around a cluster of points at the origin."""
    generator = SceneGenerator(seed=seed)
    points = generator.generate_points_box((-1, 1, -1, 1, -1, 1), n_points)
    cameras = generator.generate_cameras_circle(
        center=np.array([0.0, 0.0, camera_height]),
        radius=camera_radius,
        n_cameras=n_cameras,
        look_at=np.zeros(3)
    )
    network = generator.generate_network(
        points, cameras,
        pixel_noise=pixel_noise,
        position_noise=position_noise,
        n_ground_control=n_ground_control
    )
    return SyntheticScene(cameras=cameras, network=network, true_points=points)


def make_two_view(
    n_points: int = 4,
    scene_bounds: Tuple[float, float, float, float, float, float] = (-1, 1, -1, 1, 4, 6),
    baseline: float = 2.0,
    pixel_noise: float = 0.0,
    position_noise: float = 0.0,
    n_ground_control: int = 0,
    seed: Optional[int] = None
) -> SyntheticScene:
    """Two cameras a baseline apart on the x axis, both looking down +Z.

    Every point lies in front of both cameras and inside both images.
    """
    generator = SceneGenerator(seed=seed)
    points = generator.generate_points_box(scene_bounds, n_points)

    cameras = [
        PinholeCamera(C=[x, 0.0, 0.0], fu=500.0, fv=500.0, cu=320.0, cv=240.0)
        for x in (-baseline / 2, baseline / 2)
    ]
    network = generator.generate_network(
        points, cameras,
        pixel_noise=pixel_noise,
        position_noise=position_noise,
        n_ground_control=n_ground_control
    )
    return SyntheticScene(cameras=cameras, network=network, true_points=points)
