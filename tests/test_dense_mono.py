import numpy as np
import pytest

from slamkit import dense_mono as dm
from slamkit.lie import SE3


@pytest.fixture
def texture():
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, (dm.HEIGHT, dm.WIDTH), dtype=np.uint8)


def test_px2cam_cam2px_round_trip():
    px = np.array([123.25, 301.5])
    back = dm.cam2px(dm.px2cam(px) * 2.5)
    assert np.allclose(back, px)


def test_px2cam_principal_point():
    assert np.allclose(dm.px2cam([dm.CX, dm.CY]), [0.0, 0.0, 1.0])


@pytest.mark.parametrize(
    "pt, expected",
    [
        ((20, 20), True),
        ((19, 20), False),
        ((20, 19), False),
        ((619, 100), True),
        ((620, 100), False),
        ((100, 460), True),
        ((100, 461), False),
    ],
)
def test_inside(pt, expected):
    assert dm.inside(pt) is expected


def test_bilinear_at_integer_point(texture):
    assert dm.bilinear_interpolate(texture, (50, 70)) == pytest.approx(texture[70, 50] / 255.0)


def test_bilinear_halfway_is_mean_of_neighbours(texture):
    value = dm.bilinear_interpolate(texture, (50.5, 70))
    expected = (float(texture[70, 50]) + float(texture[70, 51])) / 2 / 255.0
    assert value == pytest.approx(expected)


def test_ncc_identical_windows(texture):
    assert dm.ncc(texture, texture, (100, 100), (100.0, 100.0)) == pytest.approx(1.0, abs=1e-6)


def test_ncc_inverted_image(texture):
    inverted = 255 - texture
    assert dm.ncc(texture, inverted, (100, 100), (100.0, 100.0)) == pytest.approx(-1.0, abs=1e-6)


def test_ncc_flat_image_is_zero(texture):
    flat = np.full_like(texture, 128)
    assert dm.ncc(texture, flat, (100, 100), (100.0, 100.0)) == pytest.approx(0.0, abs=1e-9)


def test_epipolar_search_identity_pose_finds_same_pixel(texture):
    found = dm.epipolar_search(texture, texture, SE3(), (100.0, 120.0), 3.0, 3.0 ** 0.5)
    assert found is not None
    assert np.allclose(found[0], [100.0, 120.0], atol=1e-6)


def test_epipolar_search_flat_image_fails(texture):
    flat = np.full_like(texture, 128)
    assert dm.epipolar_search(texture, flat, SE3(), (100.0, 120.0), 3.0, 1.0) is None


def _synthetic_match(true_depth):
    pt_ref = np.array([300.0, 200.0])
    f_ref = dm.px2cam(pt_ref)
    f_ref /= np.linalg.norm(f_ref)
    t_c_r = SE3(translation=(-0.2, 0.0, 0.0))
    pt_curr = dm.cam2px(t_c_r * (f_ref * true_depth))
    return pt_ref, pt_curr, t_c_r


def test_update_depth_filter_moves_towards_measurement():
    pt_ref, pt_curr, t_c_r = _synthetic_match(3.0)
    depth = np.full((dm.HEIGHT, dm.WIDTH), 5.0)
    cov = np.full((dm.HEIGHT, dm.WIDTH), 3.0)
    mu, sigma2 = dm.update_depth_filter(pt_ref, pt_curr, t_c_r, (1.0, 0.0), depth, cov)
    assert 3.0 < mu < 5.0
    assert 0.0 < sigma2 < 3.0
    assert depth[200, 300] == mu
    assert cov[200, 300] == sigma2
    assert depth[0, 0] == 5.0


def test_update_depth_filter_consistent_prior_stays():
    pt_ref, pt_curr, t_c_r = _synthetic_match(3.0)
    depth = np.full((dm.HEIGHT, dm.WIDTH), 3.0)
    cov = np.full((dm.HEIGHT, dm.WIDTH), 3.0)
    mu, _ = dm.update_depth_filter(pt_ref, pt_curr, t_c_r, (1.0, 0.0), depth, cov)
    assert mu == pytest.approx(3.0, abs=1e-6)


def test_update_skips_converged_pixels(texture):
    depth = np.full((dm.HEIGHT, dm.WIDTH), dm.INIT_DEPTH)
    cov = np.full((dm.HEIGHT, dm.WIDTH), dm.MIN_COV / 2)
    before = depth.copy()
    assert dm.update(texture, texture, SE3(), depth, cov) == 0
    assert np.array_equal(depth, before)


def test_update_rejects_wrong_shape(texture):
    small = np.zeros((10, 10))
    with pytest.raises(ValueError):
        dm.update(texture, texture, SE3(), small, small)


def test_evaluate_depth_identical():
    d = np.full((dm.HEIGHT, dm.WIDTH), 2.0)
    assert dm.evaluate_depth(d, d) == (0.0, 0.0)


def test_evaluate_depth_constant_offset():
    est = np.full((100, 100), 2.0)
    err = dm.evaluate_depth(est + 1.0, est)
    assert err.mean_error == pytest.approx(1.0)
    assert err.mean_squared_error == pytest.approx(1.0)


def test_evaluate_depth_shape_mismatch():
    with pytest.raises(ValueError):
        dm.evaluate_depth(np.zeros((50, 50)), np.zeros((60, 60)))


def test_read_dataset(tmp_path):
    (tmp_path / dm.TRAJECTORY_FILE).write_text(
        "a.png 1 2 3 0 0 0 1\nb.png 4 5 6 0 0 0 1\n", encoding="utf-8"
    )
    (tmp_path / "depthmaps").mkdir()
    (tmp_path / dm.DEPTH_FILE).write_text("100 250", encoding="utf-8")
    files, poses, ref_depth = dm.read_dataset(tmp_path)
    assert files == [str(tmp_path / "images" / "a.png"), str(tmp_path / "images" / "b.png")]
    assert np.allclose(poses[1].translation, [4, 5, 6])
    assert ref_depth.shape == (dm.HEIGHT, dm.WIDTH)
    assert ref_depth[0, 0] == pytest.approx(1.0)
    assert ref_depth[0, 1] == pytest.approx(2.5)
    assert ref_depth[1, 0] == 0.0


def test_read_dataset_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        dm.read_dataset(tmp_path)


def test_read_dataset_incomplete_record(tmp_path):
    (tmp_path / dm.TRAJECTORY_FILE).write_text("a.png 1 2 3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        dm.read_dataset(tmp_path)


def test_main_missing_dataset(tmp_path, capsys):
    assert dm.main([str(tmp_path / "nowhere")]) == 1
    assert "Reading image files failed!" in capsys.readouterr().out