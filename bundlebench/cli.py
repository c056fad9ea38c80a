"""Command-line entry point for the bundle adjustment harness."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import build_run_settings, load_config_file, merge_options
from .core.models.settings import AdjustmentType, RunSettings
from .core.pipeline.runner import run_harness
from .exceptions import BundleBenchError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, debug: bool = False):
    """Setup logging configuration."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundlebench",
        description="Bundle adjustment test harness for pinhole camera models"
    )

    parser.add_argument(
        'camera_files',
        nargs='*',
        type=Path,
        help='Pinhole camera model files; camera index j is the j-th file'
    )
    parser.add_argument('-c', '--cnet', type=Path, default=None,
                        help='Control network file (.cnet or .net)')
    parser.add_argument('-b', '--bundle-adjustment-type', default=None,
                        choices=[t.value for t in AdjustmentType],
                        help='Bundle adjustment strategy (default: ref)')
    parser.add_argument('-l', '--lambda', dest='lambda_', type=float, default=None,
                        help='Initial Levenberg-Marquardt lambda')
    parser.add_argument('--control', type=int, choices=[0, 1], default=None,
                        help='Lambda update rule: 0 scales by ten, 1 uses the gain ratio (default: 0)')
    parser.add_argument('--huber-param', type=float, default=None,
                        help='Huber loss threshold in pixels (default: 10)')
    parser.add_argument('--cauchy-param', type=float, default=None,
                        help='Cauchy loss scale in pixels (default: 10)')
    parser.add_argument('--camera-position-sigma', type=float, default=None,
                        help='Constraint on camera position adjustment (default: 1)')
    parser.add_argument('--camera-pose-sigma', type=float, default=None,
                        help='Constraint on camera pose adjustment (default: 1e-16)')
    parser.add_argument('--gcp-sigma', type=float, default=None,
                        help='Constraint on ground control point adjustment (default: 1e-16)')
    parser.add_argument('-s', '--save-iteration-data', action='store_true', default=None,
                        help='Append camera and point parameters to snapshot files every iteration')
    parser.add_argument('-i', '--max-iterations', type=int, default=None,
                        help='Maximum solver iterations per pass (default: 30)')
    parser.add_argument('-D', '--data-dir', type=Path, default=None,
                        help='Directory to read input data from (default: .)')
    parser.add_argument('-R', '--results-dir', type=Path, default=None,
                        help='Directory to write results to (default: data dir)')
    parser.add_argument('-T', '--use-ba-type-dirs', action='store_true', default=None,
                        help='Store results in a subdirectory per adjustment type')
    parser.add_argument('-M', '--remove-outliers', action='store_true', default=None,
                        help='Refit after removing outlier measures')
    parser.add_argument('--outlier-sd-cutoff', type=float, default=None,
                        help='Outlier cutoff in standard deviations; implies --remove-outliers (default: 2)')
    parser.add_argument('-r', '--report-level', type=int, default=None,
                        help='Detail of the adjustment report; 35 or more writes the error report (default: 35)')
    parser.add_argument('-f', '--config-file', type=Path, default=None,
                        help='YAML file with option values; command-line options take precedence')
    parser.add_argument('--print-config', action='store_true',
                        help='Print the resolved configuration and exit')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='Enable debug logging')
    return parser


def resolve_settings(args: argparse.Namespace) -> RunSettings:
    """Combine config file values and command-line values into run settings."""
    file_options = load_config_file(args.config_file) if args.config_file is not None else {}
    cli_options = {
        "cnet": args.cnet,
        "camera_files": args.camera_files,
        "data_dir": args.data_dir,
        "results_dir": args.results_dir,
        "use_ba_type_dirs": args.use_ba_type_dirs,
        "bundle_adjustment_type": args.bundle_adjustment_type,
        "lambda": args.lambda_,
        "control": args.control,
        "huber_param": args.huber_param,
        "cauchy_param": args.cauchy_param,
        "camera_position_sigma": args.camera_position_sigma,
        "camera_pose_sigma": args.camera_pose_sigma,
        "gcp_sigma": args.gcp_sigma,
        "max_iterations": args.max_iterations,
        "save_iteration_data": args.save_iteration_data,
        "report_level": args.report_level,
        "remove_outliers": args.remove_outliers,
        "outlier_sd_cutoff": args.outlier_sd_cutoff,
    }
    return build_run_settings(merge_options(file_options, cli_options), require_inputs=not args.print_config)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.debug)

    try:
        settings = resolve_settings(args)
        if args.print_config:
            print(settings.describe())
            return 0
        logger.info("\n" + settings.describe())

        result = run_harness(settings)
    except (BundleBenchError, ValidationError) as e:
        logger.error(str(e))
        return 1

    last_pass = result.second_pass or result.first_pass
    logger.info(f"Finished: {last_pass.state.value} after {last_pass.iterations} iterations")
    return 0


if __name__ == '__main__':
    sys.exit(main())
