"""Camera model and control network file I/O."""

from .camera_files import read_pinhole_camera, write_pinhole_camera, load_camera_models
from .control_network import load_control_network, save_control_network

__all__ = [
    "read_pinhole_camera",
    "write_pinhole_camera",
    "load_camera_models",
    "load_control_network",
    "save_control_network",
]
