"""Fit, detect outliers, reload, refit.

The cycle is a small state machine::

    FIRST_FIT -> DONE                                   (removal disabled)
    FIRST_FIT -> DETECTING -> RELOADING -> SECOND_FIT -> DONE

Detection runs out of process and blocks until the detector exits. The
second pass always gets a fresh :class:`ParameterModel` built from the
filtered network; nothing from the first pass is carried over.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ...exceptions import OutlierDetectionError
from ..export.writers import ERROR_REPORT_FILE, SnapshotWriter
from ..models.network import ControlNetwork
from ..models.settings import AdjustmentSettings
from ..io.control_network import load_control_network
from ..optimization.parameter_model import ParameterModel
from ..solver.base import BundleAdjusterBase
from ..solver.controller import IterationController, IterationResult
from ..solver.reporting import BundleAdjustReport
from ..solver.strategies import make_adjuster

logger = logging.getLogger(__name__)

PROCESSED_NETWORK_STEM = "processed"


class CycleState(str, Enum):
    FIRST_FIT = "first_fit"
    DETECTING = "detecting"
    RELOADING = "reloading"
    SECOND_FIT = "second_fit"
    DONE = "done"


class OutlierDetector(ABC):
    """Produces a filtered control network from a pixel error report."""

    @abstractmethod
    def detect(
        self,
        network_path: Path,
        error_report: Path,
        output_name: str,
        working_dir: Path,
        sd_cutoff: float,
    ) -> Path:
        """Write the filtered network to ``working_dir / output_name`` and return its path."""


class SubprocessOutlierDetector(OutlierDetector):
    """Runs an external editor command and waits for it to finish.

    The command is called as::

        <command...> -c <sd_cutoff> -o <output_name> -d <working_dir> <network> <error_report>

    No timeout is applied.
    """

    def __init__(self, command: Sequence[str]):
        if not command:
            raise ValueError("Outlier detection command must not be empty")
        self.command = list(command)

    def detect(
        self,
        network_path: Path,
        error_report: Path,
        output_name: str,
        working_dir: Path,
        sd_cutoff: float,
    ) -> Path:
        network_path, error_report, working_dir = Path(network_path), Path(error_report), Path(working_dir)
        if not error_report.is_file():
            raise OutlierDetectionError(f"Error report '{error_report}' does not exist")
        if not network_path.is_file():
            raise OutlierDetectionError(f"Control network '{network_path}' does not exist")

        args = [
            *self.command,
            "-c", str(sd_cutoff),
            "-o", output_name,
            "-d", str(working_dir),
            str(network_path),
            str(error_report),
        ]
        logger.info(f"Running outlier detection: {' '.join(args)}")
        try:
            completed = subprocess.run(args, capture_output=True, text=True)
        except OSError as e:
            raise OutlierDetectionError(f"Could not run outlier detection command '{args[0]}': {e}") from e

        if completed.stdout:
            logger.debug(completed.stdout.rstrip())
        if completed.returncode != 0:
            detail = completed.stderr.strip()
            raise OutlierDetectionError(
                f"Outlier detection exited with status {completed.returncode}"
                + (f": {detail}" if detail else "")
            )

        output = working_dir / output_name
        if not output.is_file():
            raise OutlierDetectionError(f"Outlier detection did not produce '{output}'")
        return output


@dataclass
class CycleResult:
    """What the cycle leaves behind once it reaches DONE."""

    final_model: ParameterModel
    first_pass: IterationResult
    second_pass: Optional[IterationResult] = None
    filtered_network: Optional[Path] = None
    states: List[CycleState] = field(default_factory=list)


AdjusterFactory = Callable[[ParameterModel, AdjustmentSettings], BundleAdjusterBase]
NetworkLoader = Callable[[Path], ControlNetwork]


class OutlierRemovalCycle:
    """Runs the first fit and, if enabled, the detect/reload/refit passes."""

    def __init__(
        self,
        model: ParameterModel,
        network_path: Path,
        settings: AdjustmentSettings,
        iteration_dir: Path,
        detector: Optional[OutlierDetector] = None,
        adjuster_factory: AdjusterFactory = make_adjuster,
        network_loader: NetworkLoader = load_control_network,
    ):
        """Initialize cycle.

        Args:
            model: Fresh parameter model for the first pass
            network_path: File the first-pass network was loaded from
            settings: Adjustment settings shared by both passes
            iteration_dir: Directory for snapshots, the error report and the
                filtered network
            detector: Required when ``settings.remove_outliers`` is set
            adjuster_factory: Builds the solver strategy for a model
            network_loader: Reads the filtered network
        """
        if settings.remove_outliers and detector is None:
            raise ValueError("Outlier removal is enabled but no detector was given")
        self.model = model
        self.network_path = Path(network_path)
        self.settings = settings
        self.iteration_dir = Path(iteration_dir)
        self.detector = detector
        self.adjuster_factory = adjuster_factory
        self.network_loader = network_loader
        self.state = CycleState.FIRST_FIT

    @property
    def error_report_path(self) -> Path:
        return self.iteration_dir / ERROR_REPORT_FILE

    @property
    def filtered_network_name(self) -> str:
        return PROCESSED_NETWORK_STEM + self.network_path.suffix

    def _fit(self, model: ParameterModel, name: str, snapshots: Optional[SnapshotWriter]) -> IterationResult:
        adjuster = self.adjuster_factory(model, self.settings)
        reporter = BundleAdjustReport(name, self.settings.report_level, self.error_report_path)
        controller = IterationController(adjuster, self.settings.max_iterations, snapshots, reporter)
        return controller.run()

    def run(self) -> CycleResult:
        settings = self.settings
        label = settings.adjustment_type.label
        states = [self.state]

        snapshots = None
        if settings.save_iteration_data:
            snapshots = SnapshotWriter.in_directory(self.iteration_dir)
            snapshots.clear()

        first_pass = self._fit(self.model, label, snapshots)
        result = CycleResult(final_model=self.model, first_pass=first_pass, states=states)

        if not settings.remove_outliers:
            self.state = CycleState.DONE
            states.append(self.state)
            return result

        self.state = CycleState.DETECTING
        states.append(self.state)
        if first_pass.error_report is None:
            raise OutlierDetectionError(
                f"First pass wrote no error report; report level {settings.report_level} is too low"
            )
        filtered = self.detector.detect(
            self.network_path,
            first_pass.error_report,
            self.filtered_network_name,
            self.iteration_dir,
            settings.outlier_sd_cutoff,
        )
        result.filtered_network = filtered

        self.state = CycleState.RELOADING
        states.append(self.state)
        network = self.network_loader(filtered)
        cameras = self.model.cameras
        logger.info(
            f"Reloaded network: {network.size()} points, "
            f"{self.model.num_points() - network.size()} removed"
        )
        # The first-pass model is released before its replacement is built
        self.model = None
        result.final_model = None
        self.model = ParameterModel(cameras, network, *settings.sigmas())

        self.state = CycleState.SECOND_FIT
        states.append(self.state)
        result.second_pass = self._fit(self.model, f"{label} No Outliers", snapshots)
        result.final_model = self.model

        self.state = CycleState.DONE
        states.append(self.state)
        return result
