"""Tests for TSAI camera file I/O."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from bundlebench.core.io.camera_files import load_camera_models, read_pinhole_camera, write_pinhole_camera
from bundlebench.core.math.quaternions import euler_to_matrix
from bundlebench.core.models.entities import PinholeCamera
from bundlebench.exceptions import CameraFileError

TSAI_TEXT = """\
fu = 480.5
fv = 481.25
cu = 320
cv = 240
u_direction = 1 0 0
v_direction = 0 1 0
w_direction = 0 0 1
C = 1 2 3
R = 1 0 0 0 1 0 0 0 1
k1 = -0.1
k2 = 0.01
p1 = 0.001
p2 = -0.002
"""


class TestReadPinholeCamera:
    """Test reading camera files."""

    def test_read(self, tmp_path):
        path = tmp_path / "left.tsai"
        path.write_text(TSAI_TEXT)
        camera = read_pinhole_camera(path)
        assert camera.fu == 480.5
        assert camera.fv == 481.25
        assert_allclose(camera.camera_center(), [1.0, 2.0, 3.0])
        assert_allclose(camera.get_distortion(), [-0.1, 0.01, 0.001, -0.002])
        assert camera.source_path == str(path)

    def test_distortion_is_optional(self, tmp_path):
        path = tmp_path / "cam.tsai"
        path.write_text("fu = 1\nfv = 1\ncu = 0\ncv = 0\nC = 0 0 0\nR = 1 0 0 0 1 0 0 0 1\n")
        assert_allclose(read_pinhole_camera(path).get_distortion(), np.zeros(4))

    def test_missing_key(self, tmp_path):
        path = tmp_path / "cam.tsai"
        path.write_text("fu = 1\nfv = 1\ncu = 0\nC = 0 0 0\nR = 1 0 0 0 1 0 0 0 1\n")
        with pytest.raises(CameraFileError, match="cv"):
            read_pinhole_camera(path)

    def test_wrong_value_count(self, tmp_path):
        path = tmp_path / "cam.tsai"
        path.write_text(TSAI_TEXT.replace("C = 1 2 3", "C = 1 2"))
        with pytest.raises(CameraFileError):
            read_pinhole_camera(path)

    def test_non_standard_direction(self, tmp_path):
        path = tmp_path / "cam.tsai"
        path.write_text(TSAI_TEXT.replace("u_direction = 1 0 0", "u_direction = -1 0 0"))
        with pytest.raises(CameraFileError, match="u_direction"):
            read_pinhole_camera(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(CameraFileError):
            read_pinhole_camera(tmp_path / "nope.tsai")

    def test_invalid_rotation(self, tmp_path):
        path = tmp_path / "cam.tsai"
        path.write_text(TSAI_TEXT.replace("R = 1 0 0 0 1 0 0 0 1", "R = 1 1 0 0 1 0 0 0 1"))
        with pytest.raises(CameraFileError):
            read_pinhole_camera(path)


class TestWritePinholeCamera:
    """Test writing camera files."""

    def test_round_trip(self, tmp_path):
        R = euler_to_matrix(np.array([0.1, -0.2, 0.3]))
        camera = PinholeCamera(C=[0.1, 0.2, 0.3], R=R.ravel().tolist(), fu=500, fv=510, cu=319.5, cv=239.5, k1=0.01)
        path = tmp_path / "out.tsai"
        write_pinhole_camera(camera, path)
        restored = read_pinhole_camera(path)
        assert restored.model_dump(exclude={"source_path"}) == camera.model_dump(exclude={"source_path"})

    def test_load_keeps_order(self, tmp_path, two_cameras):
        paths = []
        for j, camera in enumerate(two_cameras):
            paths.append(tmp_path / f"c{j}.tsai")
            write_pinhole_camera(camera, paths[-1])
        loaded = load_camera_models(paths)
        assert [c.C for c in loaded] == [c.C for c in two_cameras]
