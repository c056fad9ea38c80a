"""Result and report writers."""

from .writers import (
    CAMERA_PARAMS_REPORT_FILE,
    POINTS_REPORT_FILE,
    ERROR_REPORT_FILE,
    adjustment_path,
    write_adjustment,
    read_adjustment,
    write_adjusted_camera_models,
    write_camera_params,
    write_world_points,
    SnapshotWriter,
    write_error_report,
    read_error_report,
)

__all__ = [
    "CAMERA_PARAMS_REPORT_FILE",
    "POINTS_REPORT_FILE",
    "ERROR_REPORT_FILE",
    "adjustment_path",
    "write_adjustment",
    "read_adjustment",
    "write_adjusted_camera_models",
    "write_camera_params",
    "write_world_points",
    "SnapshotWriter",
    "write_error_report",
    "read_error_report",
]
