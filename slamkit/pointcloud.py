"""Building, filtering and saving point clouds from RGB-D and stereo images."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from scipy.spatial import cKDTree

from slamkit.lie import SE3

RGBD_FX = 518.0
RGBD_FY = 519.0
RGBD_CX = 325.5
RGBD_CY = 253.5
RGBD_DEPTH_SCALE = 1000.0

STEREO_FX = 718.856
STEREO_FY = 718.856
STEREO_CX = 607.1928
STEREO_CY = 185.2157
STEREO_BASELINE = 0.573
MAX_DISPARITY = 96.0

_POSE_FIELDS = 7


def read_poses(path, count=5) -> list[SE3]:
    """Read ``count`` camera-to-world poses given as ``tx ty tz qx qy qz qw``."""
    tokens = Path(path).read_text(encoding="utf-8").split()
    needed = count * _POSE_FIELDS
    if len(tokens) < needed:
        raise ValueError(f"expected {needed} pose values, found {len(tokens)}")
    try:
        values = [float(tok) for tok in tokens[:needed]]
    except ValueError as exc:
        raise ValueError(f"bad pose value: {exc}") from None
    poses = []
    for start in range(0, needed, _POSE_FIELDS):
        tx, ty, tz, qx, qy, qz, qw = values[start:start + _POSE_FIELDS]
        poses.append(SE3.from_quaternion(qw, qx, qy, qz, translation=(tx, ty, tz)))
    return poses


def depth_to_pointcloud(
    color,
    depth,
    pose: SE3,
    fx=RGBD_FX,
    fy=RGBD_FY,
    cx=RGBD_CX,
    cy=RGBD_CY,
    depth_scale=RGBD_DEPTH_SCALE,
) -> np.ndarray:
    """World points with colour from an RGB image and its depth image.

    ``color`` is H x W x 3 in RGB order, ``depth`` H x W raw depth values;
    pixels with depth 0 have no measurement and are skipped. Returns an
    N x 6 array of ``x y z r g b`` in row-major pixel order.
    """
    color = np.asarray(color)
    depth = np.asarray(depth)
    if depth.ndim != 2:
        raise ValueError(f"depth must be two-dimensional, got shape {depth.shape}")
    if color.shape[:2] != depth.shape or color.ndim != 3 or color.shape[2] < 3:
        raise ValueError("color must be H x W x 3 with the same size as depth")
    if depth_scale == 0:
        raise ValueError("depth_scale must not be zero")

    v, u = np.nonzero(depth != 0)
    z = depth[v, u].astype(float) / depth_scale
    x = (u - cx) * z / fx
    y = (v - cy) * z / fy
    world = pose * np.vstack((x, y, z))
    rgb = color[v, u, :3].astype(float)
    return np.column_stack((world.T, rgb))


def stereo_pointcloud(
    left,
    disparity,
    fx=STEREO_FX,
    fy=STEREO_FY,
    cx=STEREO_CX,
    cy=STEREO_CY,
    baseline=STEREO_BASELINE,
) -> np.ndarray:
    """Camera-frame points from a left gray image and its disparity map.

    Disparities outside ``(0, 96)`` are skipped. Returns an N x 4 array of
    ``x y z intensity`` with intensity in [0, 1].
    """
    left = np.asarray(left)
    disparity = np.asarray(disparity, dtype=float)
    if left.ndim != 2 or left.shape != disparity.shape:
        raise ValueError("left and disparity must be 2D arrays of the same shape")

    valid = (disparity > 0.0) & (disparity < MAX_DISPARITY)
    v, u = np.nonzero(valid)
    d = fx * baseline / disparity[v, u]
    x = (u - cx) / fx * d
    y = (v - cy) / fy * d
    intensity = left[v, u].astype(float) / 255.0
    return np.column_stack((x, y, d, intensity))


def _as_points(points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError(f"points must be an N x 3 (or wider) array, got {arr.shape}")
    return arr


def voxel_filter(points, resolution) -> np.ndarray:
    """Replace the points in each cubic voxel by their centroid.

    All columns (position and any colour) are averaged. Voxels come out
    ordered by their integer index.
    """
    arr = _as_points(points)
    if resolution <= 0:
        raise ValueError("resolution must be positive")
    if arr.shape[0] == 0:
        return arr.copy()
    keys = np.floor(arr[:, :3] / resolution).astype(np.int64)
    _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)
    sums = np.zeros((counts.size, arr.shape[1]))
    np.add.at(sums, inverse, arr)
    return sums / counts[:, None]


def statistical_outlier_removal(points, mean_k=50, std_mul=1.0) -> np.ndarray:
    """Drop points whose mean distance to their ``mean_k`` nearest neighbours
    exceeds the global mean of those distances plus ``std_mul`` standard deviations.
    """
    arr = _as_points(points)
    if mean_k < 1:
        raise ValueError("mean_k must be at least 1")
    n = arr.shape[0]
    if n < 3:
        return arr.copy()
    k = min(mean_k, n - 1)
    tree = cKDTree(arr[:, :3])
    distances, _ = tree.query(arr[:, :3], k=k + 1)
    mean_distances = distances[:, 1:].mean(axis=1)
    mean = mean_distances.mean()
    stddev = mean_distances.std(ddof=1)
    threshold = mean + std_mul * stddev
    return arr[mean_distances <= threshold]


def write_pcd(path, points) -> None:
    """Save points as a binary PCD file.

    N x 3 arrays are written as ``x y z``; N x 6 arrays as ``x y z rgb`` with
    the colour packed as ``r << 16 | g << 8 | b``.
    """
    arr = _as_points(points)
    with_color = arr.shape[1] >= 6
    n = arr.shape[0]
    if with_color:
        dtype = np.dtype([("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("rgb", "<u4")])
        fields = "x y z rgb"
    else:
        dtype = np.dtype([("x", "<f4"), ("y", "<f4"), ("z", "<f4")])
        fields = "x y z"
    data = np.zeros(n, dtype=dtype)
    data["x"], data["y"], data["z"] = arr[:, 0], arr[:, 1], arr[:, 2]
    if with_color:
        rgb = np.clip(np.rint(arr[:, 3:6]), 0, 255).astype(np.uint32)
        data["rgb"] = (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]
    count = len(dtype.names)
    header = (
        "# .PCD v0.7 - Point Cloud Data file format\n"
        "VERSION 0.7\n"
        f"FIELDS {fields}\n"
        f"SIZE {' '.join(['4'] * count)}\n"
        f"TYPE {' '.join(['F'] * count)}\n"
        f"COUNT {' '.join(['1'] * count)}\n"
        f"WIDTH {n}\n"
        "HEIGHT 1\n"
        "VIEWPOINT 0 0 0 1 0 0 0\n"
        f"POINTS {n}\n"
        "DATA binary\n"
    )
    with open(path, "wb") as fh:
        fh.write(header.encode("ascii"))
        fh.write(data.tobytes())