"""Shared fixtures for bundlebench tests."""

from pathlib import Path
from typing import List

import pytest

from bundlebench.core.io.camera_files import write_pinhole_camera
from bundlebench.core.io.control_network import save_control_network
from bundlebench.core.models.entities import ControlMeasure, ControlPoint, PinholeCamera, PointType
from bundlebench.core.models.network import ControlNetwork
from bundlebench.core.synthetic.scene_gen import SyntheticScene, make_two_view


def write_scene(scene: SyntheticScene, directory: Path, network_name: str = "scene.net") -> List[Path]:
    """Write a scene's cameras as cam<j>.tsai and its network to ``directory``."""
    camera_paths = []
    for j, camera in enumerate(scene.cameras):
        path = directory / f"cam{j}.tsai"
        write_pinhole_camera(camera, path)
        camera_paths.append(path)
    save_control_network(scene.network, directory / network_name)
    return camera_paths


@pytest.fixture
def simple_camera():
    """Camera at the origin looking down +Z."""
    return PinholeCamera(C=[0.0, 0.0, 0.0], fu=500.0, fv=500.0, cu=320.0, cv=240.0)


@pytest.fixture
def two_cameras():
    return [
        PinholeCamera(C=[-1.0, 0.0, 0.0], fu=500.0, fv=500.0, cu=320.0, cv=240.0),
        PinholeCamera(C=[1.0, 0.0, 0.0], fu=500.0, fv=500.0, cu=320.0, cv=240.0),
    ]


@pytest.fixture
def small_network(two_cameras):
    """Two free points and one ground control point, each seen by both cameras."""
    network = ControlNetwork(name="small")
    positions = [[0.0, 0.0, 5.0], [0.5, -0.5, 4.0], [-0.5, 0.5, 6.0]]
    for i, position in enumerate(positions):
        measures = [
            ControlMeasure(image_id=j, pixel=camera.point_to_pixel(position).tolist())
            for j, camera in enumerate(two_cameras)
        ]
        network.add_point(ControlPoint(
            id=f"p{i}",
            type=PointType.GROUND_CONTROL if i == 2 else PointType.FREE,
            position=position,
            measures=measures,
        ))
    return network


@pytest.fixture
def noisy_two_view():
    return make_two_view(n_points=6, pixel_noise=0.2, position_noise=0.03, seed=7)


@pytest.fixture
def scene_files():
    """Writer for scene input files; see :func:`write_scene`."""
    return write_scene
