"""Result files written by the harness.

- ``<camera>.adjust``: translation correction on line 1, rotation correction
  as a scalar-first unit quaternion on line 2.
- ``iterCameraParam.txt`` / ``iterPointsParam.txt``: append-only snapshots,
  one tab-separated row per camera or point per iteration, prefixed by the
  entity index.
- ``cam_*.txt`` / ``wp_*.txt``: full-state dumps with 8 significant digits.
  Camera rows are the adjusted center followed by the adjusted pose as
  ``xyz`` Euler angles; point rows are positions.
- ``image_mean.err``: per-observation pixel error report read by the
  outlier editor.
"""

import logging
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np

from ..math.quaternions import matrix_to_euler_xyz, quat_normalize
from ..optimization.diagnostics import ObservationError, observation_errors
from ..optimization.parameter_model import ParameterModel

logger = logging.getLogger(__name__)

CAMERA_PARAMS_REPORT_FILE = "iterCameraParam.txt"
POINTS_REPORT_FILE = "iterPointsParam.txt"
ERROR_REPORT_FILE = "image_mean.err"
ADJUST_EXTENSION = ".adjust"


def _exact(value: float) -> str:
    return f"{float(value):.17g}"


def _dump(value: float) -> str:
    return f"{float(value):.8g}"


def adjustment_path(camera_file: Path, results_dir: Path) -> Path:
    """``<results_dir>/<camera basename>.adjust``."""
    return Path(results_dir) / Path(camera_file).with_suffix(ADJUST_EXTENSION).name


def write_adjustment(path: Path, position_correction: np.ndarray, pose_correction: np.ndarray) -> None:
    """Write a translation correction and a unit quaternion [w, x, y, z]."""
    position_correction = np.asarray(position_correction, dtype=float)
    pose_correction = np.asarray(pose_correction, dtype=float)
    with open(path, "w") as f:
        f.write(" ".join(_exact(v) for v in position_correction) + "\n")
        f.write(" ".join(_exact(v) for v in pose_correction) + "\n")


def read_adjustment(path: Path) -> Tuple[np.ndarray, np.ndarray]:
    """Read an ``.adjust`` file back as (translation, unit quaternion)."""
    lines = [line for line in Path(path).read_text().splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError(f"{path}: expected translation and quaternion lines")
    translation = np.array([float(v) for v in lines[0].split()])
    rotation = np.array([float(v) for v in lines[1].split()])
    if translation.shape != (3,) or rotation.shape != (4,):
        raise ValueError(f"{path}: expected 3 translation and 4 quaternion values")
    return translation, quat_normalize(rotation)


def write_adjusted_camera_models(
    model: ParameterModel, camera_files: Sequence[Path], results_dir: Path
) -> List[Path]:
    """Write one ``.adjust`` file per camera, named after its source file."""
    if len(camera_files) != model.num_cameras():
        raise ValueError(
            f"Got {len(camera_files)} camera files for {model.num_cameras()} cameras"
        )
    paths = []
    for j, camera_file in enumerate(camera_files):
        path = adjustment_path(camera_file, results_dir)
        a_j = model.camera_parameters(j)
        write_adjustment(path, a_j[:3], model.pose_correction(a_j))
        paths.append(path)
    logger.debug(f"Wrote {len(paths)} adjustment files to {results_dir}")
    return paths


def write_camera_params(model: ParameterModel, path: Path) -> None:
    """Adjusted camera centers and poses, one camera per line."""
    logger.debug("Writing camera parameters")
    with open(path, "w") as f:
        for camera in model.adjusted_cameras():
            center = camera.camera_center()
            pose = matrix_to_euler_xyz(camera.camera_pose())
            f.write("\t".join(_dump(v) for v in (*center, *pose)) + "\n")


def write_world_points(model: ParameterModel, path: Path) -> None:
    """Current point positions, one point per line."""
    logger.debug(f"Writing {model.num_points()} world points")
    with open(path, "w") as f:
        for i in range(model.num_points()):
            f.write("\t".join(_dump(v) for v in model.point_parameters(i)) + "\n")


class SnapshotWriter:
    """Appends camera and point parameters to the per-iteration snapshot files."""

    def __init__(self, camera_path: Path, point_path: Path):
        self.camera_path = Path(camera_path)
        self.point_path = Path(point_path)

    @classmethod
    def in_directory(cls, directory: Path) -> "SnapshotWriter":
        directory = Path(directory)
        return cls(directory / CAMERA_PARAMS_REPORT_FILE, directory / POINTS_REPORT_FILE)

    def clear(self) -> None:
        """Truncate both files."""
        self.camera_path.parent.mkdir(parents=True, exist_ok=True)
        self.point_path.parent.mkdir(parents=True, exist_ok=True)
        self.camera_path.write_text("")
        self.point_path.write_text("")

    def append(self, model: ParameterModel) -> None:
        with open(self.camera_path, "a") as f:
            for j in range(model.num_cameras()):
                f.write("\t".join([str(j)] + [_exact(v) for v in model.camera_parameters(j)]) + "\n")
        with open(self.point_path, "a") as f:
            for i in range(model.num_points()):
                f.write("\t".join([str(i)] + [_exact(v) for v in model.point_parameters(i)]) + "\n")


def write_error_report(model: ParameterModel, path: Path) -> Path:
    """Per-observation pixel errors: point, measure, camera, error."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write("# point\tmeasure\tcamera\terror\n")
        for e in observation_errors(model):
            f.write(f"{e.point_index}\t{e.measure_index}\t{e.camera_index}\t{_exact(e.error)}\n")
    logger.debug(f"Wrote pixel error report for {model.num_pixel_observations()} observations to {path}")
    return path


def read_error_report(path: Path) -> List[ObservationError]:
    errors = []
    for line_no, line in enumerate(Path(path).read_text().splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split()
        if len(fields) != 4:
            raise ValueError(f"{path}:{line_no}: expected 4 fields, got {len(fields)}")
        errors.append(ObservationError(int(fields[0]), int(fields[1]), int(fields[2]), float(fields[3])))
    return errors
