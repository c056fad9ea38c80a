"""End-to-end tests for the harness run."""

import sys
from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose

from bundlebench.core.export.writers import read_adjustment
from bundlebench.core.models.settings import AdjustmentSettings, RunSettings
from bundlebench.core.pipeline.runner import run_harness
from bundlebench.core.synthetic.scene_gen import make_ring_scene
from bundlebench.exceptions import ConfigurationError, ModelIntegrityError


class TestRunHarness:
    """Test the full run sequence and its outputs."""

    def test_outputs(self, tmp_path, noisy_two_view, scene_files):
        camera_paths = scene_files(noisy_two_view, tmp_path)
        settings = RunSettings(
            cnet_file=Path("scene.net"),
            camera_files=[Path(p.name) for p in camera_paths],
            data_dir=tmp_path,
            results_dir=tmp_path / "results",
            adjustment=AdjustmentSettings(max_iterations=10, save_iteration_data=True),
        )
        result = run_harness(settings)
        results = tmp_path / "results"

        for name in ("cam_initial.txt", "wp_initial.txt", "cam_final.txt", "wp_final.txt",
                     "cam0.adjust", "cam1.adjust", "image_mean.err",
                     "iterCameraParam.txt", "iterPointsParam.txt"):
            assert (results / name).is_file(), name

        initial = np.loadtxt(results / "wp_initial.txt")
        final = np.loadtxt(results / "wp_final.txt")
        assert initial.shape == final.shape == (noisy_two_view.network.size(), 3)
        assert_allclose(final, result.final_model.point_parameter_array(), rtol=1e-7)

        translation, rotation = read_adjustment(results / "cam1.adjust")
        assert_allclose(translation, result.final_model.camera_parameters(1)[:3], atol=1e-15)
        assert np.linalg.norm(rotation) == pytest.approx(1.0)

    def test_initial_dump_reflects_priors(self, tmp_path, noisy_two_view, scene_files):
        camera_paths = scene_files(noisy_two_view, tmp_path)
        settings = RunSettings(
            cnet_file=Path("scene.net"),
            camera_files=camera_paths,
            adjustment=AdjustmentSettings(max_iterations=0),
            data_dir=tmp_path,
        )
        result = run_harness(settings)
        initial = np.loadtxt(tmp_path / "wp_initial.txt")
        final = np.loadtxt(tmp_path / "wp_final.txt")
        assert_allclose(initial, final)
        assert result.first_pass.iterations == 0

        cameras = np.loadtxt(tmp_path / "cam_initial.txt")
        assert_allclose(cameras[:, :3], [c.C for c in noisy_two_view.cameras], atol=1e-7)
        assert_allclose(cameras[:, 3:], 0.0, atol=1e-7)

    def test_ba_type_dirs(self, tmp_path, noisy_two_view, scene_files):
        camera_paths = scene_files(noisy_two_view, tmp_path)
        settings = RunSettings(
            cnet_file=Path("scene.net"),
            camera_files=camera_paths,
            data_dir=tmp_path,
            use_ba_type_dirs=True,
            adjustment=AdjustmentSettings(adjustment_type="sparse_cauchy", max_iterations=3),
        )
        run_harness(settings)
        assert (tmp_path / "sparse_cauchy" / "cam_final.txt").is_file()

    def test_missing_camera_file(self, tmp_path, noisy_two_view, scene_files):
        scene_files(noisy_two_view, tmp_path)
        settings = RunSettings(cnet_file=Path("scene.net"), camera_files=[Path("cam7.tsai")], data_dir=tmp_path)
        with pytest.raises(ConfigurationError):
            run_harness(settings)
        assert not (tmp_path / "cam_initial.txt").exists()

    def test_too_few_cameras(self, tmp_path, noisy_two_view, scene_files):
        camera_paths = scene_files(noisy_two_view, tmp_path)
        settings = RunSettings(cnet_file=Path("scene.net"), camera_files=camera_paths[:1], data_dir=tmp_path)
        with pytest.raises(ModelIntegrityError):
            run_harness(settings)

    def test_outlier_removal_with_bundled_editor(self, tmp_path, scene_files):
        scene = make_ring_scene(n_cameras=4, n_points=10, pixel_noise=0.2, position_noise=0.03, seed=3)
        scene.network.points[0].measures[0].pixel[0] += 80.0
        camera_paths = scene_files(scene, tmp_path, network_name="scene.cnet")
        settings = RunSettings(
            cnet_file=Path("scene.cnet"),
            camera_files=camera_paths,
            data_dir=tmp_path,
            results_dir=tmp_path / "out",
            use_ba_type_dirs=True,
            outlier_command=[sys.executable, "-m", "bundlebench.cnet_editor"],
            adjustment=AdjustmentSettings(
                adjustment_type="sparse_huber",
                huber_param=2.0,
                max_iterations=15,
                remove_outliers=True,
            ),
        )
        result = run_harness(settings)

        assert result.filtered_network == tmp_path / "out" / "sparse_huber_no_outliers" / "processed.cnet"
        assert result.final_model.num_pixel_observations() < scene.network.num_measures()
        assert (tmp_path / "out" / "sparse_huber" / "cam_final.txt").is_file()
