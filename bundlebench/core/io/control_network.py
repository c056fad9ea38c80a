"""Read and write control networks.

Two formats are supported, chosen by file extension:

- ``.cnet``: JSON serialization of :class:`ControlNetwork`.
- ``.net``: PVL-style text, one ``Group = ControlPoint`` per point::

    Object = ControlNetwork
      NetworkId = survey
      Group = ControlPoint
        PointId = p0
        PointType = Ground
        Position = (1.0, 2.0, 10.0)
        Group = ControlMeasure
          ImageId = 0
          Sample = 321.5
          Line = 240.25
        End_Group
      End_Group
    End_Object

  ``PointType`` is ``Ground`` for ground control points and ``Tie`` for
  free points. ``Sample``/``Line`` are the pixel u/v coordinates; other
  keys are ignored.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from ...exceptions import ControlNetworkError
from ..models.entities import ControlMeasure, ControlPoint, PointType
from ..models.network import ControlNetwork

logger = logging.getLogger(__name__)

JSON_EXTENSION = ".cnet"
PVL_EXTENSION = ".net"

_PVL_POINT_TYPES = {"ground": PointType.GROUND_CONTROL, "tie": PointType.FREE}


def load_control_network(path: Path) -> ControlNetwork:
    """Load a control network, choosing the reader from the extension."""
    path = Path(path)
    logger.debug(f"Loading control network from file: {path}")

    suffix = path.suffix.lower()
    if suffix not in (JSON_EXTENSION, PVL_EXTENSION):
        raise ControlNetworkError(f'Unknown control network file extension, "{path.suffix}".')
    if not path.is_file():
        raise ControlNetworkError(f"Control network file '{path}' does not exist or is not a regular file")

    text = path.read_text()
    if suffix == JSON_EXTENSION:
        logger.debug("\tReading JSON control network file")
        try:
            network = ControlNetwork.model_validate_json(text)
        except ValidationError as e:
            raise ControlNetworkError(f"{path}: invalid control network: {e}") from e
    else:
        logger.debug("\tReading PVL control network file")
        network = parse_pvl_network(text, path)

    logger.debug(f"Loaded {network.size()} control points with {network.num_measures()} measures")
    return network


def save_control_network(network: ControlNetwork, path: Path) -> None:
    """Write a control network in the format given by the extension."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == JSON_EXTENSION:
        path.write_text(network.model_dump_json(indent=2))
    elif suffix == PVL_EXTENSION:
        path.write_text(format_pvl_network(network))
    else:
        raise ControlNetworkError(f'Unknown control network file extension, "{path.suffix}".')


def _parse_tuple(value: str, size: int, where: str) -> List[float]:
    stripped = value.strip()
    if not (stripped.startswith("(") and stripped.endswith(")")):
        raise ControlNetworkError(f"{where}: expected a parenthesized tuple, got {value!r}")
    try:
        numbers = [float(part) for part in stripped[1:-1].split(",")]
    except ValueError:
        raise ControlNetworkError(f"{where}: non-numeric tuple {value!r}") from None
    if len(numbers) != size:
        raise ControlNetworkError(f"{where}: expected {size} values, got {len(numbers)}")
    return numbers


def _build_measure(fields: Dict[str, str], where: str) -> ControlMeasure:
    try:
        image_id = int(fields["imageid"])
        pixel = [float(fields["sample"]), float(fields["line"])]
    except KeyError as e:
        raise ControlNetworkError(f"{where}: ControlMeasure missing {e.args[0]!r}") from None
    except ValueError:
        raise ControlNetworkError(f"{where}: invalid ControlMeasure values") from None
    return ControlMeasure(image_id=image_id, pixel=pixel)


def _build_point(fields: Dict[str, str], measures: List[ControlMeasure], where: str) -> ControlPoint:
    if "pointid" not in fields or "position" not in fields:
        raise ControlNetworkError(f"{where}: ControlPoint needs PointId and Position")
    point_type = fields.get("pointtype", "Tie").lower()
    if point_type not in _PVL_POINT_TYPES:
        raise ControlNetworkError(f"{where}: unknown PointType {fields['pointtype']!r}")
    return ControlPoint(
        id=fields["pointid"],
        type=_PVL_POINT_TYPES[point_type],
        position=_parse_tuple(fields["position"], 3, where),
        measures=measures,
    )


def parse_pvl_network(text: str, path: Optional[Path] = None) -> ControlNetwork:
    """Parse the PVL-style control network text."""
    source = str(path) if path is not None else "<pvl>"
    network = ControlNetwork()
    # Each frame: (kind, fields, child measures)
    stack: List[Tuple[str, Dict[str, str], List[ControlMeasure]]] = []

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        where = f"{source}:{line_no}"
        key, sep, value = line.partition("=")
        key, value = key.strip(), value.strip()
        lowered = key.lower()

        if lowered in ("end_group", "end_object"):
            if not stack:
                raise ControlNetworkError(f"{where}: unmatched {key}")
            kind, fields, measures = stack.pop()
            if kind == "controlmeasure":
                if not stack or stack[-1][0] != "controlpoint":
                    raise ControlNetworkError(f"{where}: ControlMeasure outside a ControlPoint")
                stack[-1][2].append(_build_measure(fields, where))
            elif kind == "controlpoint":
                network.add_point(_build_point(fields, measures, where))
            continue
        if lowered == "end":
            break
        if not sep:
            raise ControlNetworkError(f"{where}: expected 'key = value', got {raw!r}")

        if lowered in ("object", "group"):
            kind = value.lower()
            if kind not in ("controlnetwork", "controlpoint", "controlmeasure"):
                raise ControlNetworkError(f"{where}: unknown {key} {value!r}")
            stack.append((kind, {}, []))
        elif not stack:
            raise ControlNetworkError(f"{where}: {key!r} outside any Object")
        elif stack[-1][0] == "controlnetwork" and lowered == "networkid":
            network.name = value
        else:
            stack[-1][1][lowered] = value

    if stack:
        raise ControlNetworkError(f"{source}: unterminated {stack[-1][0]}")
    return network


def format_pvl_network(network: ControlNetwork) -> str:
    """Serialize a control network to PVL-style text."""
    lines = ["Object = ControlNetwork", f"  NetworkId = {network.name}"]
    for point in network.points:
        point_type = "Ground" if point.is_ground_control() else "Tie"
        x, y, z = point.position
        lines += [
            "  Group = ControlPoint",
            f"    PointId = {point.id}",
            f"    PointType = {point_type}",
            f"    Position = ({x!r}, {y!r}, {z!r})",
        ]
        for measure in point.measures:
            lines += [
                "    Group = ControlMeasure",
                f"      ImageId = {measure.image_id}",
                f"      Sample = {measure.pixel[0]!r}",
                f"      Line = {measure.pixel[1]!r}",
                "    End_Group",
            ]
        lines.append("  End_Group")
    lines.append("End_Object")
    return "\n".join(lines) + "\n"
