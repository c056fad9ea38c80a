"""End-to-end harness run."""

import logging
from typing import Optional

from ..export.writers import write_adjusted_camera_models, write_camera_params, write_world_points
from ..io.camera_files import load_camera_models
from ..io.control_network import load_control_network
from ..models.settings import RunSettings
from ..optimization.parameter_model import ParameterModel
from .outliers import CycleResult, OutlierDetector, OutlierRemovalCycle, SubprocessOutlierDetector

logger = logging.getLogger(__name__)

INITIAL_CAMERAS_FILE = "cam_initial.txt"
INITIAL_POINTS_FILE = "wp_initial.txt"
FINAL_CAMERAS_FILE = "cam_final.txt"
FINAL_POINTS_FILE = "wp_final.txt"


def run_harness(settings: RunSettings, detector: Optional[OutlierDetector] = None) -> CycleResult:
    """Load inputs, run the adjustment cycle and write every result file.

    Args:
        settings: Validated run settings
        detector: Outlier detector; defaults to running ``settings.outlier_command``

    Returns:
        The finished cycle, whose ``final_model`` holds the adjusted parameters
    """
    settings.check_inputs()
    adjustment = settings.adjustment

    network = load_control_network(settings.network_path())
    camera_paths = settings.camera_paths()
    cameras = load_camera_models(camera_paths)

    results_dir = settings.results_path()
    iteration_dir = settings.iteration_data_path()
    results_dir.mkdir(parents=True, exist_ok=True)
    iteration_dir.mkdir(parents=True, exist_ok=True)

    model = ParameterModel(cameras, network, *adjustment.sigmas())
    write_camera_params(model, results_dir / INITIAL_CAMERAS_FILE)
    write_world_points(model, results_dir / INITIAL_POINTS_FILE)

    if adjustment.remove_outliers and detector is None:
        detector = SubprocessOutlierDetector(settings.outlier_command)

    logger.info(f"Running {adjustment.adjustment_type.label} bundle adjustment")
    cycle = OutlierRemovalCycle(
        model,
        settings.network_path(),
        adjustment,
        iteration_dir,
        detector=detector,
    )
    del model
    result = cycle.run()

    final_model = result.final_model
    write_adjusted_camera_models(final_model, camera_paths, results_dir)
    write_camera_params(final_model, results_dir / FINAL_CAMERAS_FILE)
    write_world_points(final_model, results_dir / FINAL_POINTS_FILE)
    logger.info(f"Results written to {results_dir}")
    return result
