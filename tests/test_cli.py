"""Tests for the bundlebench command line."""

import numpy as np

from bundlebench.cli import build_parser, main


class TestParser:
    """Test option parsing."""

    def test_unset_options_are_none(self):
        args = build_parser().parse_args(["-c", "n.net", "a.tsai"])
        assert args.max_iterations is None
        assert args.remove_outliers is None
        assert args.lambda_ is None

    def test_lambda_destination(self):
        args = build_parser().parse_args(["-l", "0.5", "a.tsai"])
        assert args.lambda_ == 0.5


class TestMain:
    """Test whole runs through ``main``."""

    def test_run(self, tmp_path, noisy_two_view, scene_files):
        scene_files(noisy_two_view, tmp_path)
        status = main([
            "-c", "scene.net", "-D", str(tmp_path), "-b", "sparse", "-i", "5",
            "cam0.tsai", "cam1.tsai",
        ])
        assert status == 0
        assert (tmp_path / "cam0.adjust").is_file()
        final = np.loadtxt(tmp_path / "wp_final.txt")
        assert final.shape == (noisy_two_view.network.size(), 3)

    def test_print_config(self, tmp_path, capsys):
        status = main(["-c", "scene.net", "-b", "sparse_cauchy", "--print-config", "cam0.tsai"])
        assert status == 0
        out = capsys.readouterr().out
        assert "Configured Options" in out
        assert "Sparse Cauchy" in out
        assert not (tmp_path / "cam_final.txt").exists()

    def test_print_config_without_inputs(self, capsys):
        status = main(["--print-config", "-i", "12"])
        assert status == 0
        out = capsys.readouterr().out
        assert "Configured Options" in out
        assert "Control network file: (none)" in out
        assert "Maximum iterations: 12" in out

    def test_missing_network_option(self, tmp_path):
        assert main(["-D", str(tmp_path), "cam0.tsai"]) == 1

    def test_missing_input_file(self, tmp_path):
        assert main(["-c", "missing.net", "-D", str(tmp_path), "cam0.tsai"]) == 1

    def test_invalid_value(self, tmp_path, noisy_two_view, scene_files):
        scene_files(noisy_two_view, tmp_path)
        assert main(["-c", "scene.net", "-D", str(tmp_path), "--gcp-sigma", "0", "cam0.tsai", "cam1.tsai"]) == 1

    def test_config_file(self, tmp_path, noisy_two_view, scene_files):
        scene_files(noisy_two_view, tmp_path)
        config = tmp_path / "run.yaml"
        config.write_text(
            f"cnet: scene.net\n"
            f"camera-files: [cam0.tsai, cam1.tsai]\n"
            f"data-dir: {tmp_path}\n"
            f"results-dir: {tmp_path / 'results'}\n"
            f"use-ba-type-dirs: true\n"
            f"max-iterations: 50\n"
        )
        status = main(["-f", str(config), "-i", "3"])
        assert status == 0
        assert (tmp_path / "results" / "ref" / "cam_final.txt").is_file()
