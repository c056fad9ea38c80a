"""Tests for the outlier editor."""

import pytest

from bundlebench.cnet_editor import main, remove_outliers
from bundlebench.core.io.control_network import load_control_network, save_control_network
from bundlebench.core.models.entities import ControlMeasure, ControlPoint, PointType
from bundlebench.core.models.network import ControlNetwork
from bundlebench.core.optimization.diagnostics import ObservationError, observation_errors
from bundlebench.core.optimization.parameter_model import ParameterModel
from bundlebench.exceptions import ControlNetworkError


def _network_and_errors(errors_per_point, ground_control=()):
    """Build a network whose k-th measure of point i is seen by camera k."""
    network = ControlNetwork(name="edit")
    errors = []
    for i, point_errors in enumerate(errors_per_point):
        network.add_point(ControlPoint(
            id=f"p{i}",
            type=PointType.GROUND_CONTROL if i in ground_control else PointType.FREE,
            position=[float(i), 0.0, 5.0],
            measures=[ControlMeasure(image_id=k, pixel=[100.0 + k, 200.0]) for k in range(len(point_errors))],
        ))
        errors += [ObservationError(i, k, k, e) for k, e in enumerate(point_errors)]
    return network, errors


class TestRemoveOutliers:
    """Test the measure and point removal rules."""

    def test_free_point_left_with_one_measure_is_dropped(self):
        network, errors = _network_and_errors(
            [[0.1, 0.2, 0.3], [0.1, 50.0], [0.2], [0.3, 0.2]], ground_control={2}
        )
        filtered = remove_outliers(network, errors, 2.0)
        assert [p.id for p in filtered.points] == ["p0", "p2", "p3"]
        assert filtered.num_measures() == 6

    def test_ground_control_point_left_without_measures_is_dropped(self):
        network, errors = _network_and_errors([[0.1, 0.2], [0.1, 0.2], [50.0]], ground_control={2})
        filtered = remove_outliers(network, errors, 1.5)
        assert [p.id for p in filtered.points] == ["p0", "p1"]

    def test_ground_control_point_with_one_measure_is_kept(self):
        network, errors = _network_and_errors([[0.1, 0.2, 0.1], [40.0, 0.2], [0.3, 0.2]], ground_control={1})
        filtered = remove_outliers(network, errors, 2.0)
        assert [p.id for p in filtered.points] == ["p0", "p1", "p2"]
        assert len(filtered.points[1].measures) == 1
        assert filtered.points[1].measures[0].image_id == 1

    def test_input_is_not_modified(self):
        network, errors = _network_and_errors([[0.1, 0.2, 0.3], [0.1, 50.0], [0.3, 0.2]])
        remove_outliers(network, errors, 1.0)
        assert network.size() == 3
        assert network.num_measures() == 7

    def test_uniform_errors_remove_nothing(self):
        network, errors = _network_and_errors([[0.5, 0.5], [0.5, 0.5]])
        filtered = remove_outliers(network, errors, 2.0)
        assert filtered.num_measures() == 4

    def test_unknown_measure(self):
        network, _ = _network_and_errors([[0.1, 0.2]])
        with pytest.raises(ControlNetworkError):
            remove_outliers(network, [ObservationError(0, 5, 0, 1.0)], 2.0)

    def test_non_finite_errors_are_outliers(self):
        network, errors = _network_and_errors(
            [[0.1, 0.2, 0.3], [0.2, 0.1, 0.3], [float("nan"), float("nan")]], ground_control={2}
        )
        filtered = remove_outliers(network, errors, 2.0)
        assert [p.id for p in filtered.points] == ["p0", "p1"]
        assert filtered.num_measures() == 6

    def test_threshold_ignores_non_finite_errors(self):
        network, errors = _network_and_errors([[0.1, 0.2, 0.1], [0.2, 40.0, 0.1, 0.2], [float("inf"), 0.3, 0.2]])
        filtered = remove_outliers(network, errors, 2.0)
        assert [len(p.measures) for p in filtered.points] == [3, 3, 2]
        assert [m.image_id for m in filtered.points[2].measures] == [1, 2]

    def test_behind_camera_point_removed_from_adjusted_model(self, two_cameras, small_network):
        network = small_network.model_copy(deep=True)
        network.add_point(ControlPoint(
            id="behind",
            position=[0.0, 0.0, -5.0],
            measures=[ControlMeasure(image_id=j, pixel=[320.0, 240.0]) for j in range(2)],
        ))
        model = ParameterModel(two_cameras, network, 1.0, 1e-16, 1e-16)
        filtered = remove_outliers(network, observation_errors(model), 3.0)
        assert [p.id for p in filtered.points] == ["p0", "p1", "p2"]


class TestMain:
    """Test the command-line entry point."""

    def test_writes_filtered_network(self, tmp_path):
        network, errors = _network_and_errors([[0.1, 0.2, 0.3], [0.1, 50.0], [0.3, 0.2]])
        save_control_network(network, tmp_path / "in.net")
        report = tmp_path / "image_mean.err"
        report.write_text(
            "# point\tmeasure\tcamera\terror\n"
            + "".join(f"{e.point_index}\t{e.measure_index}\t{e.camera_index}\t{e.error}\n" for e in errors)
        )

        status = main(["-c", "1.5", "-o", "processed.net", "-d", str(tmp_path / "out"),
                       str(tmp_path / "in.net"), str(report)])
        assert status == 0
        filtered = load_control_network(tmp_path / "out" / "processed.net")
        assert [p.id for p in filtered.points] == ["p0", "p2"]

    def test_missing_report(self, tmp_path):
        network, _ = _network_and_errors([[0.1, 0.2]])
        save_control_network(network, tmp_path / "in.net")
        status = main(["-o", "processed.net", "-d", str(tmp_path),
                       str(tmp_path / "in.net"), str(tmp_path / "missing.err")])
        assert status == 1
        assert not (tmp_path / "processed.net").exists()
