"""Tests for the outlier-removal cycle and the subprocess detector."""

import sys
from pathlib import Path

import pytest
from numpy.testing import assert_array_equal

from bundlebench.core.io.control_network import save_control_network
from bundlebench.core.models.settings import AdjustmentSettings
from bundlebench.core.optimization.parameter_model import ParameterModel
from bundlebench.core.pipeline.outliers import (
    CycleState,
    OutlierDetector,
    OutlierRemovalCycle,
    SubprocessOutlierDetector,
)
from bundlebench.core.solver.controller import IterationController
from bundlebench.core.solver.strategies import make_adjuster
from bundlebench.core.synthetic.scene_gen import make_ring_scene
from bundlebench.exceptions import OutlierDetectionError


class FakeDetector(OutlierDetector):
    """Writes the input network minus its last ``drop`` points."""

    def __init__(self, network, drop=1):
        self.network = network
        self.drop = drop
        self.calls = []

    def detect(self, network_path, error_report, output_name, working_dir, sd_cutoff):
        self.calls.append((Path(network_path), Path(error_report), output_name, Path(working_dir), sd_cutoff))
        filtered = self.network.model_copy(deep=True)
        filtered.points = filtered.points[:-self.drop]
        output = Path(working_dir) / output_name
        save_control_network(filtered, output)
        return output


class FailingDetector(OutlierDetector):
    def detect(self, network_path, error_report, output_name, working_dir, sd_cutoff):
        raise OutlierDetectionError("detector exited with status 2")


@pytest.fixture
def scene():
    return make_ring_scene(n_cameras=3, n_points=8, pixel_noise=0.2, position_noise=0.03, seed=5)


@pytest.fixture
def network_file(tmp_path, scene):
    path = tmp_path / "scene.net"
    save_control_network(scene.network, path)
    return path


def _model(scene, settings):
    return ParameterModel(scene.cameras, scene.network, *settings.sigmas())


class TestCycleWithoutRemoval:
    """Test the FIRST_FIT -> DONE path."""

    def test_equals_single_fit(self, tmp_path, scene, network_file):
        settings = AdjustmentSettings(adjustment_type="sparse", max_iterations=5)
        model = _model(scene, settings)
        result = OutlierRemovalCycle(model, network_file, settings, tmp_path).run()

        reference = _model(scene, settings)
        IterationController(make_adjuster(reference, settings), settings.max_iterations).run()

        assert result.states == [CycleState.FIRST_FIT, CycleState.DONE]
        assert result.final_model is model
        assert result.second_pass is None
        assert result.filtered_network is None
        assert_array_equal(model.camera_parameter_array(), reference.camera_parameter_array())
        assert_array_equal(model.point_parameter_array(), reference.point_parameter_array())

    def test_error_report_written(self, tmp_path, scene, network_file):
        settings = AdjustmentSettings(max_iterations=2)
        result = OutlierRemovalCycle(_model(scene, settings), network_file, settings, tmp_path).run()
        assert result.first_pass.error_report == tmp_path / "image_mean.err"
        assert result.first_pass.error_report.is_file()

    def test_snapshots_cleared_once(self, tmp_path, scene, network_file):
        (tmp_path / "iterCameraParam.txt").write_text("stale\n")
        settings = AdjustmentSettings(max_iterations=2, save_iteration_data=True)
        result = OutlierRemovalCycle(_model(scene, settings), network_file, settings, tmp_path).run()
        rows = (tmp_path / "iterCameraParam.txt").read_text().splitlines()
        assert "stale" not in rows
        assert len(rows) == result.first_pass.iterations * len(scene.cameras)

    def test_removal_requires_detector(self, tmp_path, scene, network_file):
        settings = AdjustmentSettings(remove_outliers=True)
        with pytest.raises(ValueError):
            OutlierRemovalCycle(_model(scene, settings), network_file, settings, tmp_path)


class TestCycleWithRemoval:
    """Test the detect/reload/refit path."""

    def test_second_pass_uses_filtered_network(self, tmp_path, scene, network_file):
        settings = AdjustmentSettings(adjustment_type="sparse", max_iterations=4,
                                      remove_outliers=True, outlier_sd_cutoff=1.5)
        detector = FakeDetector(scene.network, drop=2)
        built = []

        def factory(model, adjustment):
            built.append((model, model.point_parameter_array()))
            return make_adjuster(model, adjustment)

        first_model = _model(scene, settings)
        cycle = OutlierRemovalCycle(first_model, network_file, settings, tmp_path,
                                    detector=detector, adjuster_factory=factory)
        result = cycle.run()

        assert result.states == [
            CycleState.FIRST_FIT, CycleState.DETECTING, CycleState.RELOADING,
            CycleState.SECOND_FIT, CycleState.DONE,
        ]
        assert cycle.state == CycleState.DONE
        assert result.final_model is not first_model
        assert result.final_model.num_points() == scene.network.size() - 2
        assert result.filtered_network == tmp_path / "processed.net"
        assert result.second_pass is not None

        # The refit starts from the filtered network positions, not the first fit
        second_model, second_start = built[1]
        assert second_model is result.final_model
        for i in range(second_model.num_points()):
            assert_array_equal(second_start[i], scene.network.points[i].position)

        network_path, error_report, output_name, working_dir, cutoff = detector.calls[0]
        assert network_path == network_file
        assert error_report == tmp_path / "image_mean.err"
        assert output_name == "processed.net"
        assert working_dir == tmp_path
        assert cutoff == 1.5

    def test_same_cameras_and_sigmas(self, tmp_path, scene, network_file):
        settings = AdjustmentSettings(max_iterations=1, remove_outliers=True, camera_position_sigma=3.0)
        result = OutlierRemovalCycle(_model(scene, settings), network_file, settings, tmp_path,
                                     detector=FakeDetector(scene.network)).run()
        assert result.final_model.sigmas == (3.0, 1e-16, 1e-16)
        assert result.final_model.cameras == scene.cameras

    def test_detector_failure_is_fatal(self, tmp_path, scene, network_file):
        settings = AdjustmentSettings(max_iterations=1, remove_outliers=True)
        cycle = OutlierRemovalCycle(_model(scene, settings), network_file, settings, tmp_path,
                                    detector=FailingDetector())
        with pytest.raises(OutlierDetectionError):
            cycle.run()
        assert cycle.state == CycleState.DETECTING


class TestSubprocessOutlierDetector:
    """Test the external process wrapper."""

    @pytest.fixture
    def inputs(self, tmp_path, network_file):
        report = tmp_path / "image_mean.err"
        report.write_text("# point\tmeasure\tcamera\terror\n")
        return network_file, report

    def test_non_zero_exit(self, tmp_path, inputs):
        detector = SubprocessOutlierDetector([sys.executable, "-c", "import sys; sys.exit(3)"])
        with pytest.raises(OutlierDetectionError, match="status 3"):
            detector.detect(*inputs, "processed.net", tmp_path, 2.0)

    def test_missing_output(self, tmp_path, inputs):
        detector = SubprocessOutlierDetector([sys.executable, "-c", "pass"])
        with pytest.raises(OutlierDetectionError, match="did not produce"):
            detector.detect(*inputs, "processed.net", tmp_path, 2.0)

    def test_command_not_found(self, tmp_path, inputs):
        detector = SubprocessOutlierDetector([str(tmp_path / "no-such-editor")])
        with pytest.raises(OutlierDetectionError, match="Could not run"):
            detector.detect(*inputs, "processed.net", tmp_path, 2.0)

    def test_missing_error_report(self, tmp_path, network_file):
        detector = SubprocessOutlierDetector([sys.executable, "-c", "pass"])
        with pytest.raises(OutlierDetectionError, match="Error report"):
            detector.detect(network_file, tmp_path / "missing.err", "processed.net", tmp_path, 2.0)

    def test_arguments(self, tmp_path, inputs):
        script = (
            "import sys, pathlib; args = sys.argv[1:]; "
            "pathlib.Path(args[5], args[3]).write_text(' '.join(args))"
        )
        detector = SubprocessOutlierDetector([sys.executable, "-c", script])
        output = detector.detect(*inputs, "processed.net", tmp_path, 2.5)
        assert output == tmp_path / "processed.net"
        network, report = inputs
        assert output.read_text() == f"-c 2.5 -o processed.net -d {tmp_path} {network} {report}"

    def test_bundled_editor(self, tmp_path, inputs):
        detector = SubprocessOutlierDetector([sys.executable, "-m", "bundlebench.cnet_editor"])
        output = detector.detect(*inputs, "processed.net", tmp_path, 2.0)
        assert output.is_file()
