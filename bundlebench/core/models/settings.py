"""Run and bundle adjustment settings."""

from enum import Enum
from pathlib import Path
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ...exceptions import ConfigurationError

# Report level at which the per-observation error report is written.
ERROR_REPORT_LEVEL = 35


class AdjustmentType(str, Enum):
    """Available bundle adjustment strategies."""

    REF = "ref"
    SPARSE = "sparse"
    SPARSE_HUBER = "sparse_huber"
    SPARSE_CAUCHY = "sparse_cauchy"
    ROBUST_REF = "robust_ref"
    ROBUST_SPARSE = "robust_sparse"

    @property
    def label(self) -> str:
        return {
            "ref": "Reference",
            "sparse": "Sparse",
            "sparse_huber": "Sparse Huber",
            "sparse_cauchy": "Sparse Cauchy",
            "robust_ref": "Robust Reference",
            "robust_sparse": "Robust Sparse",
        }[self.value]


class AdjustmentSettings(BaseModel):
    """Settings for one bundle adjustment run."""

    model_config = ConfigDict(populate_by_name=True)

    adjustment_type: AdjustmentType = Field(default=AdjustmentType.REF, description="Strategy to run")
    lambda_: Optional[float] = Field(
        default=None,
        alias="lambda",
        gt=0,
        description="Initial Levenberg-Marquardt lambda (strategy default if unset)"
    )
    control: Literal[0, 1] = Field(default=0, description="Lambda update rule")
    huber_param: float = Field(default=10.0, gt=0, description="Huber loss threshold in pixels")
    cauchy_param: float = Field(default=10.0, gt=0, description="Cauchy loss scale in pixels")
    camera_position_sigma: float = Field(default=1.0, gt=0, description="Constraint on camera position adjustment")
    camera_pose_sigma: float = Field(default=1e-16, gt=0, description="Constraint on camera pose adjustment")
    gcp_sigma: float = Field(default=1e-16, gt=0, description="Constraint on ground control point adjustment")
    max_iterations: int = Field(default=30, ge=0, description="Maximum solver iterations per pass")
    save_iteration_data: bool = Field(default=False, description="Append parameters to snapshot files each iteration")
    report_level: int = Field(default=ERROR_REPORT_LEVEL, ge=0, description="Detail of the adjustment report")
    remove_outliers: bool = Field(default=False, description="Refit after removing outlier measures")
    outlier_sd_cutoff: float = Field(default=2.0, gt=0, description="Outlier cutoff in standard deviations")

    @model_validator(mode="after")
    def check_outlier_report(self):
        if self.remove_outliers and self.report_level < ERROR_REPORT_LEVEL:
            raise ValueError(
                f"Outlier removal needs report_level >= {ERROR_REPORT_LEVEL} "
                f"to produce the error report, got {self.report_level}"
            )
        return self

    def sigmas(self) -> tuple[float, float, float]:
        """(camera position, camera pose, ground control) sigmas."""
        return self.camera_position_sigma, self.camera_pose_sigma, self.gcp_sigma


class RunSettings(BaseModel):
    """Everything needed for one harness run."""

    cnet_file: Optional[Path] = Field(default=None, description="Control network file (.cnet or .net)")
    camera_files: List[Path] = Field(default_factory=list, description="Pinhole camera model files")
    data_dir: Path = Field(default=Path("."), description="Directory to read input data from")
    results_dir: Optional[Path] = Field(default=None, description="Directory to write results to")
    use_ba_type_dirs: bool = Field(default=False, description="Store results in per-strategy subdirectories")
    outlier_command: List[str] = Field(
        default_factory=lambda: ["bundlebench-cnet-editor"],
        min_length=1,
        description="Command used to run outlier detection"
    )
    adjustment: AdjustmentSettings = Field(default_factory=AdjustmentSettings)

    def network_path(self) -> Optional[Path]:
        if self.cnet_file is None:
            return None
        return self.data_dir / self.cnet_file

    def camera_paths(self) -> List[Path]:
        """Camera files without a parent directory are read from the data directory."""
        return [
            path if path.parent != Path(".") else self.data_dir / path
            for path in self.camera_files
        ]

    def results_path(self) -> Path:
        results = self.results_dir if self.results_dir is not None else self.data_dir
        if self.use_ba_type_dirs:
            results = results / self.adjustment.adjustment_type.value
        return results

    def iteration_data_path(self) -> Path:
        """Directory for snapshot files, the error report and the filtered network."""
        results = self.results_dir if self.results_dir is not None else self.data_dir
        if self.use_ba_type_dirs:
            type_dir = self.adjustment.adjustment_type.value
            if self.adjustment.remove_outliers:
                type_dir += "_no_outliers"
            results = results / type_dir
        return results

    def check_inputs(self) -> None:
        """Fail before any work if a required input file is missing."""
        self.check_inputs_given()
        network = self.network_path()
        if not network.is_file():
            raise ConfigurationError(f"Control network file '{network}' does not exist or is not a regular file")
        for path in self.camera_paths():
            if not path.is_file():
                raise ConfigurationError(f"Camera model file '{path}' does not exist or is not a regular file")
        results = self.results_path()
        if results.exists() and not results.is_dir():
            raise ConfigurationError(f"Results path '{results}' is not a directory")

    def check_inputs_given(self) -> None:
        """Fail if the control network or the camera files were never named."""
        if self.cnet_file is None:
            raise ConfigurationError("No control network file given (use -c/--cnet)")
        if not self.camera_files:
            raise ConfigurationError("No camera model files given")

    def describe(self) -> str:
        """Human-readable summary of the configured options."""
        a = self.adjustment
        lines = [
            "Configured Options",
            "----------------------------------------------------",
            f"Control network file: {self.cnet_file if self.cnet_file is not None else '(none)'}",
            f"Camera files: {', '.join(str(p) for p in self.camera_files) or '(none)'}",
            f"Bundle adjustment type: {a.adjustment_type.label}",
        ]
        if a.lambda_ is not None:
            lines.append(f"Lambda: {a.lambda_}")
        lines += [
            f"Control: {a.control}",
            f"Huber parameter: {a.huber_param}",
            f"Cauchy parameter: {a.cauchy_param}",
            f"Camera position sigma: {a.camera_position_sigma}",
            f"Camera pose sigma: {a.camera_pose_sigma}",
            f"Ground control point sigma: {a.gcp_sigma}",
            f"Maximum iterations: {a.max_iterations}",
            f"Save iteration data? {a.save_iteration_data}",
            f"Report level: {a.report_level}",
            f"Data directory: {self.data_dir}",
            f"Results directory: {self.results_path()}",
            f"Use bundle adjustment type dirs? {self.use_ba_type_dirs}",
            f"Remove outliers? {a.remove_outliers}",
            f"Outlier SD cutoff: {a.outlier_sd_cutoff}",
        ]
        return "\n".join(lines)
