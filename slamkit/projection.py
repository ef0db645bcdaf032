"""Reprojection errors and Jacobians for pose and landmark optimization.

Poses map world points into the camera and are updated by left
multiplication with the exponential of a twist (translation, rotation).
"""

from __future__ import annotations

import numpy as np

from slamkit.lie import SE3

_Z_EPS = 1e-18


def _intrinsics(k) -> np.ndarray:
    arr = np.asarray(k, dtype=float)
    if arr.shape != (3, 3):
        raise ValueError("intrinsic matrix must be 3x3")
    return arr.copy()


def _vector(v, size: int, name: str) -> np.ndarray:
    arr = np.asarray(v, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    return arr


def pose_plus(pose: SE3, update) -> SE3:
    """Apply a 6-vector update to a pose by left multiplication."""
    return SE3.exp(_vector(update, 6, "update")) * pose


def _project(k: np.ndarray, p_cam: np.ndarray) -> np.ndarray:
    pixel = k @ p_cam
    return pixel[:2] / pixel[2]


def _pose_jacobian(k: np.ndarray, p_cam: np.ndarray) -> np.ndarray:
    fx, fy = k[0, 0], k[1, 1]
    x, y, z = p_cam
    zinv = 1.0 / (z + _Z_EPS)
    zinv2 = zinv * zinv
    return np.array(
        [
            [-fx * zinv, 0.0, fx * x * zinv2, fx * x * y * zinv2, -fx - fx * x * x * zinv2, fx * y * zinv],
            [0.0, -fy * zinv, fy * y * zinv2, fy + fy * y * y * zinv2, -fy * x * y * zinv2, -fy * x * zinv],
        ]
    )


class PoseOnlyProjectionEdge:
    """Reprojection of a fixed 3D point; only the camera pose varies."""

    def __init__(self, position, k):
        self.position = _vector(position, 3, "position").copy()
        self.k = _intrinsics(k)

    def error(self, pose: SE3, measurement) -> np.ndarray:
        """Measured pixel minus the projection of the point."""
        measured = _vector(measurement, 2, "measurement")
        return measured - _project(self.k, pose * self.position)

    def jacobian(self, pose: SE3) -> np.ndarray:
        """2x6 Jacobian of the error with respect to a pose update."""
        return _pose_jacobian(self.k, pose * self.position)


class ProjectionEdge:
    """Reprojection of a landmark into a camera mounted with extrinsics ``cam_ext``."""

    def __init__(self, k, cam_ext: SE3):
        self.k = _intrinsics(k)
        self.cam_ext = cam_ext

    def _camera_point(self, pose: SE3, point) -> np.ndarray:
        return (self.cam_ext * pose) * _vector(point, 3, "point")

    def error(self, pose: SE3, point, measurement) -> np.ndarray:
        """Measured pixel minus the projection of the landmark."""
        measured = _vector(measurement, 2, "measurement")
        return measured - _project(self.k, self._camera_point(pose, point))

    def jacobians(self, pose: SE3, point) -> tuple[np.ndarray, np.ndarray]:
        """Jacobians of the error: 2x6 for the pose update, 2x3 for the point."""
        j_pose = _pose_jacobian(self.k, self._camera_point(pose, point))
        j_point = j_pose[:, :3] @ self.cam_ext.rotation_matrix() @ pose.rotation_matrix()
        return j_pose, j_point