"""End-of-run reporting for a bundle adjustment pass."""

import logging
from pathlib import Path
from typing import Optional

from ..export.writers import write_error_report
from ..models.settings import ERROR_REPORT_LEVEL
from ..optimization.diagnostics import summarize_errors
from ..optimization.parameter_model import ParameterModel

logger = logging.getLogger(__name__)


class BundleAdjustReport:
    """Logs error statistics and, at a high enough level, writes the error report."""

    def __init__(self, name: str, report_level: int = ERROR_REPORT_LEVEL, error_report_path: Optional[Path] = None):
        """Initialize reporter.

        Args:
            name: Label of the pass, e.g. "Sparse Huber No Outliers"
            report_level: Detail level; 0 disables reporting
            error_report_path: Where the per-observation report goes
        """
        self.name = name
        self.report_level = report_level
        self.error_report_path = Path(error_report_path) if error_report_path is not None else None

    def finish(self, model: ParameterModel, adjuster) -> Optional[Path]:
        if self.report_level > 0:
            summary = summarize_errors(model)
            pixel = summary["pixel"]
            logger.info(
                f"{self.name}: {adjuster.iterations} iterations, pixel error mean {pixel['mean']:.6g} "
                f"std {pixel['std']:.6g} max {pixel['max']:.6g}"
            )
            logger.info(
                f"{self.name}: camera position drift max {summary['camera_position']['max']:.6g}, "
                f"pose drift max {summary['camera_pose_degrees']['max']:.6g} deg, "
                f"GCP drift max {summary['gcp']['max']:.6g}"
            )

        if self.report_level >= ERROR_REPORT_LEVEL and self.error_report_path is not None:
            return write_error_report(model, self.error_report_path)
        return None
