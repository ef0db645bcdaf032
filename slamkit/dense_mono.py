"""Dense monocular depth estimation along epipolar lines with NCC matching.

Depth is the distance along each reference pixel's viewing ray. Every pixel
keeps a Gaussian estimate (mean and variance) that is fused with new
triangulated measurements until it converges or diverges.
"""

from __future__ import annotations

import argparse
import math
import sys
from itertools import islice
from pathlib import Path
from typing import NamedTuple

import numpy as np
from PIL import Image

from slamkit.lie import SE3

BORDER = 20
WIDTH = 640
HEIGHT = 480
FX = float(np.float32(481.2))
FY = float(np.float32(-480.0))
CX = float(np.float32(319.5))
CY = float(np.float32(239.5))
NCC_WINDOW = 3
NCC_AREA = (2 * NCC_WINDOW + 1) ** 2
MIN_COV = 0.1
MAX_COV = 10.0
INIT_DEPTH = 3.0
INIT_COV2 = 3.0

TRAJECTORY_FILE = "first_200_frames_traj_over_table_input_sequence.txt"
DEPTH_FILE = Path("depthmaps") / "scene_000.depth"

_SEARCH_STEP = 0.7
_MAX_HALF_LENGTH = 100.0
_MIN_SEARCH_DEPTH = 0.1
_NCC_THRESHOLD = float(np.float32(0.85))

_OFFSETS = np.arange(-NCC_WINDOW, NCC_WINDOW + 1)
_OX, _OY = np.meshgrid(_OFFSETS, _OFFSETS, indexing="ij")


class DepthError(NamedTuple):
    mean_error: float
    mean_squared_error: float


def px2cam(px) -> np.ndarray:
    """Pixel to a point on the normalized image plane (z = 1)."""
    return np.array([(px[0] - CX) / FX, (px[1] - CY) / FY, 1.0])


def cam2px(p_cam) -> np.ndarray:
    """Camera-frame point to pixel coordinates."""
    return np.array([p_cam[0] * FX / p_cam[2] + CX, p_cam[1] * FY / p_cam[2] + CY])


def inside(pt) -> bool:
    """True if the pixel lies inside the image minus the border."""
    x, y = pt[0], pt[1]
    return bool(x >= BORDER and y >= BORDER and x + BORDER < WIDTH and y + BORDER <= HEIGHT)


def _bilinear(img: np.ndarray, xs, ys) -> np.ndarray:
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    ix = xs.astype(int)
    iy = ys.astype(int)
    xx = xs - np.floor(xs)
    yy = ys - np.floor(ys)
    return (
        (1 - xx) * (1 - yy) * img[iy, ix].astype(float)
        + xx * (1 - yy) * img[iy, ix + 1].astype(float)
        + (1 - xx) * yy * img[iy + 1, ix].astype(float)
        + xx * yy * img[iy + 1, ix + 1].astype(float)
    ) / 255.0


def bilinear_interpolate(img, pt) -> float:
    """Gray value in [0, 1] at a sub-pixel position, bilinearly interpolated."""
    img = np.asarray(img)
    return float(_bilinear(img, [pt[0]], [pt[1]])[0])


def ncc(ref, curr, pt_ref, pt_curr) -> float:
    """Zero-mean normalized cross-correlation of two windows."""
    ref = np.asarray(ref)
    curr = np.asarray(curr)
    rx = (_OX + pt_ref[0]).astype(int)
    ry = (_OY + pt_ref[1]).astype(int)
    values_ref = ref[ry, rx].astype(float) / 255.0
    values_curr = _bilinear(curr, pt_curr[0] + _OX, pt_curr[1] + _OY)

    mean_ref = values_ref.sum() / NCC_AREA
    mean_curr = values_curr.sum() / NCC_AREA
    dr = values_ref - mean_ref
    dc = values_curr - mean_curr
    numerator = float((dr * dc).sum())
    denominator1 = float((dr * dr).sum())
    denominator2 = float((dc * dc).sum())
    return numerator / math.sqrt(denominator1 * denominator2 + 1e-10)


def epipolar_search(ref, curr, t_c_r: SE3, pt_ref, depth_mu, depth_cov):
    """Search the epipolar segment in ``curr`` for the match of ``pt_ref``.

    ``depth_cov`` is the standard deviation of the depth. Returns
    ``(pt_curr, epipolar_direction)``, or ``None`` if no match is good enough.
    """
    pt_ref = np.asarray(pt_ref, dtype=float)
    f_ref = px2cam(pt_ref)
    f_ref /= np.linalg.norm(f_ref)
    p_ref = f_ref * depth_mu

    px_mean_curr = cam2px(t_c_r * p_ref)
    d_min = max(depth_mu - 3 * depth_cov, _MIN_SEARCH_DEPTH)
    d_max = depth_mu + 3 * depth_cov
    px_min_curr = cam2px(t_c_r * (f_ref * d_min))
    px_max_curr = cam2px(t_c_r * (f_ref * d_max))

    epipolar_line = px_max_curr - px_min_curr
    length = float(np.linalg.norm(epipolar_line))
    direction = epipolar_line / length if length > 0 else epipolar_line.copy()
    half_length = min(0.5 * length, _MAX_HALF_LENGTH)

    best_ncc = -1.0
    best_px_curr = None
    step = -half_length
    while step <= half_length:
        px_curr = px_mean_curr + step * direction
        if inside(px_curr):
            score = ncc(ref, curr, pt_ref, px_curr)
            if score > best_ncc:
                best_ncc = score
                best_px_curr = px_curr
        step += _SEARCH_STEP
    if best_ncc < _NCC_THRESHOLD:
        return None
    return best_px_curr, direction


def _angle(cos_value: float) -> float:
    return math.acos(min(1.0, max(-1.0, cos_value)))


def update_depth_filter(pt_ref, pt_curr, t_c_r: SE3, epipolar_direction, depth, depth_cov2):
    """Triangulate the match and fuse it into the depth maps in place.

    Returns the fused ``(mean, variance)`` for the reference pixel.
    """
    pt_ref = np.asarray(pt_ref, dtype=float)
    pt_curr = np.asarray(pt_curr, dtype=float)
    t_r_c = t_c_r.inverse()
    f_ref = px2cam(pt_ref)
    f_ref /= np.linalg.norm(f_ref)
    f_curr = px2cam(pt_curr)
    f_curr /= np.linalg.norm(f_curr)

    # d_ref * f_ref = d_cur * (R_RC * f_cur) + t_RC, solved in least squares form.
    t = t_r_c.translation
    f2 = t_r_c.rotation * f_curr
    b = np.array([t @ f_ref, t @ f2])
    a01 = -(f_ref @ f2)
    a = np.array([[f_ref @ f_ref, a01], [-a01, -(f2 @ f2)]])
    ans = np.linalg.solve(a, b)
    xm = ans[0] * f_ref
    xn = t + ans[1] * f2
    p_esti = (xm + xn) / 2.0
    depth_estimation = float(np.linalg.norm(p_esti))

    # Uncertainty from a one-pixel error along the epipolar line.
    p = f_ref * depth_estimation
    a_vec = p - t
    t_norm = float(np.linalg.norm(t))
    a_norm = float(np.linalg.norm(a_vec))
    alpha = _angle(float(f_ref @ t) / t_norm)
    _angle(float(-(a_vec @ t)) / (a_norm * t_norm))
    f_curr_prime = px2cam(pt_curr + np.asarray(epipolar_direction, dtype=float))
    f_curr_prime /= np.linalg.norm(f_curr_prime)
    beta_prime = _angle(float(f_curr_prime @ -t) / t_norm)
    gamma = math.pi - alpha - beta_prime
    p_prime = t_norm * math.sin(beta_prime) / math.sin(gamma)
    d_cov = p_prime - depth_estimation
    d_cov2 = d_cov * d_cov

    x, y = int(pt_ref[0]), int(pt_ref[1])
    mu = depth[y, x]
    sigma2 = depth_cov2[y, x]
    mu_fuse = (d_cov2 * mu + sigma2 * depth_estimation) / (sigma2 + d_cov2)
    sigma_fuse2 = (sigma2 * d_cov2) / (sigma2 + d_cov2)
    depth[y, x] = mu_fuse
    depth_cov2[y, x] = sigma_fuse2
    return float(mu_fuse), float(sigma_fuse2)


def _check_shape(name: str, arr) -> np.ndarray:
    arr = np.asarray(arr)
    if arr.shape != (HEIGHT, WIDTH):
        raise ValueError(f"{name} must have shape ({HEIGHT}, {WIDTH}), got {arr.shape}")
    return arr


def update(ref, curr, t_c_r: SE3, depth, depth_cov2) -> int:
    """Update the whole depth map from a new image; returns the pixels updated.

    Pixels whose variance has converged or diverged are left alone.
    """
    ref = _check_shape("ref", ref)
    curr = _check_shape("curr", curr)
    _check_shape("depth", depth)
    _check_shape("depth_cov2", depth_cov2)

    region = depth_cov2[BORDER:HEIGHT - BORDER, BORDER:WIDTH - BORDER]
    active = (region >= MIN_COV) & (region <= MAX_COV)
    xs, ys = np.nonzero(active.T)
    updated = 0
    for x, y in zip(xs + BORDER, ys + BORDER):
        pt_ref = np.array([x, y], dtype=float)
        found = epipolar_search(
            ref, curr, t_c_r, pt_ref, float(depth[y, x]), math.sqrt(depth_cov2[y, x])
        )
        if found is None:
            continue
        pt_curr, direction = found
        update_depth_filter(pt_ref, pt_curr, t_c_r, direction, depth, depth_cov2)
        updated += 1
    return updated


def evaluate_depth(depth_truth, depth_estimate) -> DepthError:
    """Mean error and mean squared error over the image minus the border."""
    truth = np.asarray(depth_truth, dtype=float)
    estimate = np.asarray(depth_estimate, dtype=float)
    if truth.shape != estimate.shape:
        raise ValueError("depth maps must have the same shape")
    rows, cols = truth.shape
    error = (truth - estimate)[BORDER:rows - BORDER, BORDER:cols - BORDER]
    if error.size == 0:
        raise ValueError("depth maps are smaller than the border")
    return DepthError(float(error.mean()), float((error * error).mean()))


def read_dataset(path):
    """Image paths, camera-to-world poses and the reference depth map of a dataset.

    Trajectory records are ``image tx ty tz qx qy qz qw``; the reference depth
    file holds centimetres and is returned in metres.
    """
    root = Path(path)
    tokens = iter((root / TRAJECTORY_FILE).read_text(encoding="utf-8").split())
    image_files: list[str] = []
    poses: list[SE3] = []
    for name in tokens:
        fields = list(islice(tokens, 7))
        if len(fields) < 7:
            raise ValueError(f"incomplete trajectory record for {name!r}")
        tx, ty, tz, qx, qy, qz, qw = (float(f) for f in fields)
        image_files.append(str(root / "images" / name))
        poses.append(SE3.from_quaternion(qw, qx, qy, qz, translation=(tx, ty, tz)))

    values = np.array(
        [float(v) for v in (root / DEPTH_FILE).read_text(encoding="utf-8").split()]
    )
    ref_depth = np.zeros(HEIGHT * WIDTH)
    count = min(values.size, ref_depth.size)
    ref_depth[:count] = values[:count] / 100.0
    return image_files, poses, ref_depth.reshape(HEIGHT, WIDTH)


def _load_gray(path):
    try:
        with Image.open(path) as img:
            return np.asarray(img.convert("L"))
    except OSError:
        return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="dense_mapping", description="Dense monocular depth estimation on a known trajectory."
    )
    parser.add_argument("dataset", help="path to the test dataset")
    parser.add_argument("-o", "--output", default="depth.png", help="where to save the depth map")
    args = parser.parse_args(argv)

    try:
        image_files, poses, ref_depth = read_dataset(args.dataset)
    except (OSError, ValueError):
        print("Reading image files failed!")
        return 1
    if not image_files:
        print("Reading image files failed!")
        return 1
    print(f"read total {len(image_files)} files.")

    ref = _load_gray(image_files[0])
    if ref is None:
        print(f"cannot read image {image_files[0]}", file=sys.stderr)
        return 1
    pose_ref = poses[0]
    depth = np.full((HEIGHT, WIDTH), INIT_DEPTH)
    depth_cov2 = np.full((HEIGHT, WIDTH), INIT_COV2)

    for index, (image_file, pose) in enumerate(zip(image_files[1:], poses[1:]), start=1):
        print(f"*** loop {index} ***")
        curr = _load_gray(image_file)
        if curr is None:
            continue
        t_c_r = pose.inverse() * pose_ref
        update(ref, curr, t_c_r, depth, depth_cov2)
        err = evaluate_depth(ref_depth, depth)
        print(
            f"Average squared error = {err.mean_squared_error}, "
            f"average error: {err.mean_error}"
        )

    print("estimation returns, saving depth map ...")
    Image.fromarray(np.clip(np.rint(depth), 0, 255).astype(np.uint8)).save(args.output)
    print("done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())