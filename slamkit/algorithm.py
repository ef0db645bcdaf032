"""Triangulation and small conversion helpers used by the odometry pipeline."""

from __future__ import annotations

import numpy as np

_RANK_EPS = 1e-12
_QUALITY_RATIO = 1e-2


def triangulation(poses, points):
    """Linear triangulation of one point seen in several views, solved with SVD.

    ``poses`` map world coordinates into each camera; ``points`` are the
    observations on each camera's normalized image plane (only the first
    two coordinates are used). Returns the world point, or ``None`` when
    the solution is of poor quality or the system is degenerate.
    """
    poses = list(poses)
    points = list(points)
    if len(poses) != len(points):
        raise ValueError("poses and points must have the same length")
    if len(poses) < 2:
        raise ValueError("triangulation needs at least two views")

    rows = []
    for pose, point in zip(poses, points):
        m = pose.matrix3x4()
        x, y = float(point[0]), float(point[1])
        rows.append(x * m[2] - m[0])
        rows.append(y * m[2] - m[1])
    a = np.vstack(rows)

    _, s, vt = np.linalg.svd(a)
    v = vt[3]
    if s[2] <= _RANK_EPS * s[0] or v[3] == 0:
        return None
    pt_world = v[:3] / v[3]
    if s[3] / s[2] < _QUALITY_RATIO:
        return pt_world
    return None


def to_vec2(point) -> np.ndarray:
    """A 2-vector from an object with ``x``/``y`` attributes or a 2-sequence."""
    if hasattr(point, "x") and hasattr(point, "y"):
        return np.array([float(point.x), float(point.y)])
    arr = np.asarray(point, dtype=float).reshape(-1)
    if arr.shape != (2,):
        raise ValueError(f"point must have two coordinates, got {arr.shape}")
    return arr.copy()