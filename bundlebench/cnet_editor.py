"""Control network editor that removes outlier measures.

Invoked by the harness between the two adjustment passes::

    bundlebench-cnet-editor -c 2.0 -o processed.net -d results/ survey.net results/image_mean.err

A measure is an outlier when its pixel error exceeds ``mean + cutoff * sd``
over all finite errors in the report (population standard deviation). Measures
with a non-finite error, such as points behind the camera, are always
outliers. Free points left with fewer than two measures are dropped, as is
any point left with none.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from .core.export.writers import read_error_report
from .core.io.control_network import load_control_network, save_control_network
from .core.models.network import ControlNetwork
from .core.optimization.diagnostics import ObservationError
from .exceptions import BundleBenchError, ControlNetworkError

logger = logging.getLogger(__name__)

MIN_FREE_POINT_MEASURES = 2


def remove_outliers(network: ControlNetwork, errors: Sequence[ObservationError], sd_cutoff: float) -> ControlNetwork:
    """Return a copy of ``network`` without the outlier measures.

    Raises:
        ControlNetworkError: if the report refers to a measure the network
            does not have
    """
    for e in errors:
        if not (0 <= e.point_index < network.size()
                and 0 <= e.measure_index < len(network.points[e.point_index].measures)):
            raise ControlNetworkError(
                f"Error report refers to point {e.point_index} measure {e.measure_index}, "
                f"which is not in the network"
            )

    filtered = network.model_copy(deep=True)
    if not errors:
        return filtered

    # Measures that do not project have no error to compare and always go
    values = np.array([e.error for e in errors], dtype=float)
    finite = values[np.isfinite(values)]
    threshold = float(np.mean(finite) + sd_cutoff * np.std(finite)) if finite.size else float("inf")
    outliers = {
        (e.point_index, e.measure_index) for e in errors
        if not np.isfinite(e.error) or e.error > threshold
    }
    logger.info(f"Error threshold {threshold:.6g} px: {len(outliers)} of {len(errors)} measures are outliers")

    kept_points = []
    for i, point in enumerate(filtered.points):
        point.measures = [m for k, m in enumerate(point.measures) if (i, k) not in outliers]
        if not point.measures:
            continue
        if not point.is_ground_control() and len(point.measures) < MIN_FREE_POINT_MEASURES:
            continue
        kept_points.append(point)

    logger.info(f"Kept {len(kept_points)} of {network.size()} control points")
    filtered.points = kept_points
    return filtered


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundlebench-cnet-editor",
        description="Remove outlier measures from a control network using a pixel error report"
    )
    parser.add_argument('network', type=Path, help='Input control network (.cnet or .net)')
    parser.add_argument('error_report', type=Path, help='Per-observation pixel error report')
    parser.add_argument('-c', '--cutoff', type=float, default=2.0,
                        help='Cutoff in standard deviations above the mean error (default: 2)')
    parser.add_argument('-o', '--output', required=True,
                        help='File name of the filtered network; its extension selects the format')
    parser.add_argument('-d', '--directory', type=Path, default=Path('.'),
                        help='Directory to write the filtered network to')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        if not args.error_report.is_file():
            raise BundleBenchError(f"Error report '{args.error_report}' does not exist")
        network = load_control_network(args.network)
        errors = read_error_report(args.error_report)
        filtered = remove_outliers(network, errors, args.cutoff)
        args.directory.mkdir(parents=True, exist_ok=True)
        output = args.directory / args.output
        save_control_network(filtered, output)
    except (BundleBenchError, ValueError) as e:
        logger.error(str(e))
        return 1

    logger.info(f"Wrote filtered network to {output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
