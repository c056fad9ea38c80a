"""Read and write Pinhole camera models in the TSAI text format.

A TSAI file holds ``key = value`` lines::

    fu = 500
    fv = 500
    cu = 320
    cv = 240
    u_direction = 1 0 0
    v_direction = 0 1 0
    w_direction = 0 0 1
    C = 0 0 0
    R = 1 0 0 0 1 0 0 0 1
    k1 = 0
    k2 = 0
    p1 = 0
    p2 = 0
"""

import logging
from pathlib import Path
from typing import Dict, List, Sequence

import numpy as np
from pydantic import ValidationError

from ...exceptions import CameraFileError
from ..models.entities import PinholeCamera

logger = logging.getLogger(__name__)

_SIZES = {
    "fu": 1, "fv": 1, "cu": 1, "cv": 1,
    "u_direction": 3, "v_direction": 3, "w_direction": 3,
    "C": 3, "R": 9,
    "k1": 1, "k2": 1, "p1": 1, "p2": 1,
}
_DIRECTIONS = {
    "u_direction": [1.0, 0.0, 0.0],
    "v_direction": [0.0, 1.0, 0.0],
    "w_direction": [0.0, 0.0, 1.0],
}


def _parse_tsai(text: str, path: Path) -> Dict[str, List[float]]:
    values: Dict[str, List[float]] = {}
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        if "=" not in line:
            raise CameraFileError(f"{path}:{line_no}: expected 'key = value', got {raw!r}")
        key, _, rest = line.partition("=")
        key = key.strip()
        if key not in _SIZES:
            raise CameraFileError(f"{path}:{line_no}: unknown key {key!r}")
        try:
            numbers = [float(token) for token in rest.split()]
        except ValueError:
            raise CameraFileError(f"{path}:{line_no}: non-numeric value for {key!r}") from None
        if len(numbers) != _SIZES[key]:
            raise CameraFileError(
                f"{path}:{line_no}: {key!r} needs {_SIZES[key]} values, got {len(numbers)}"
            )
        values[key] = numbers
    return values


def read_pinhole_camera(path: Path) -> PinholeCamera:
    """Read one TSAI camera model file."""
    path = Path(path)
    if not path.is_file():
        raise CameraFileError(f"Camera model file '{path}' does not exist or is not a regular file")

    values = _parse_tsai(path.read_text(), path)

    missing = [key for key in ("fu", "fv", "cu", "cv", "C", "R") if key not in values]
    if missing:
        raise CameraFileError(f"{path}: missing required keys {missing}")

    for key, expected in _DIRECTIONS.items():
        if key in values and not np.allclose(values[key], expected):
            raise CameraFileError(f"{path}: non-standard {key} {values[key]} is not supported")

    try:
        return PinholeCamera(
            C=values["C"],
            R=values["R"],
            fu=values["fu"][0],
            fv=values["fv"][0],
            cu=values["cu"][0],
            cv=values["cv"][0],
            k1=values.get("k1", [0.0])[0],
            k2=values.get("k2", [0.0])[0],
            p1=values.get("p1", [0.0])[0],
            p2=values.get("p2", [0.0])[0],
            source_path=str(path),
        )
    except ValidationError as e:
        raise CameraFileError(f"{path}: invalid camera model: {e}") from e


def write_pinhole_camera(camera: PinholeCamera, path: Path) -> None:
    """Write a camera in TSAI format."""

    def fmt(values) -> str:
        return " ".join(f"{float(v):.17g}" for v in values)

    lines = [
        f"fu = {fmt([camera.fu])}",
        f"fv = {fmt([camera.fv])}",
        f"cu = {fmt([camera.cu])}",
        f"cv = {fmt([camera.cv])}",
    ]
    lines += [f"{key} = {fmt(value)}" for key, value in _DIRECTIONS.items()]
    lines += [
        f"C = {fmt(camera.C)}",
        f"R = {fmt(camera.R)}",
        f"k1 = {fmt([camera.k1])}",
        f"k2 = {fmt([camera.k2])}",
        f"p1 = {fmt([camera.p1])}",
        f"p2 = {fmt([camera.p2])}",
    ]
    Path(path).write_text("\n".join(lines) + "\n")


def load_camera_models(paths: Sequence[Path]) -> List[PinholeCamera]:
    """Read camera models in order; camera index j is the j-th path."""
    logger.debug("Loading camera models")
    cameras = []
    for path in paths:
        logger.debug(f"\t{path}")
        cameras.append(read_pinhole_camera(Path(path)))
    return cameras
