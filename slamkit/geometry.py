"""Conversions between poses and hyperplanes (lines in 2D, planes in 3D)."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from slamkit.lie import SE3, SO3

EPSILON = 1e-10


@dataclass(eq=False)
class Hyperplane:
    """The set of points p with ``normal . p + offset == 0``."""

    normal: np.ndarray
    offset: float

    def __post_init__(self):
        self.normal = np.asarray(self.normal, dtype=float).reshape(-1)
        self.offset = float(self.offset)

    @classmethod
    def through(cls, normal, point) -> "Hyperplane":
        n = np.asarray(normal, dtype=float).reshape(-1)
        p = np.asarray(point, dtype=float).reshape(-1)
        if n.shape != p.shape:
            raise ValueError("normal and point must have the same dimension")
        return cls(n, -float(n @ p))

    @property
    def dim(self) -> int:
        return self.normal.shape[0]

    def signed_distance(self, point) -> float:
        return float(self.normal @ np.asarray(point, dtype=float) + self.offset)


def _rotation_matrix(rotation, size: int) -> np.ndarray:
    if isinstance(rotation, SO3):
        m = rotation.matrix()
    else:
        m = np.asarray(rotation, dtype=float)
    if m.shape != (size, size):
        raise ValueError(f"rotation must be {size}x{size}")
    return m


def _vector(v, size: int, name: str) -> np.ndarray:
    a = np.asarray(v, dtype=float)
    if a.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},)")
    return a


def normal_from_so2(rotation) -> np.ndarray:
    """Line normal along the y-axis of a 2D rotation."""
    return _rotation_matrix(rotation, 2)[:, 1].copy()


def so2_from_normal(normal) -> np.ndarray:
    """2D rotation matrix whose y-axis is the given line normal."""
    n = _vector(normal, 2, "normal")
    if n @ n <= EPSILON:
        raise ValueError(f"normal {n.tolist()} is too close to zero")
    n = n / np.linalg.norm(n)
    c, s = n[1], -n[0]
    return np.array([[c, -s], [s, c]])


def normal_from_so3(rotation) -> np.ndarray:
    """Plane normal along the z-axis of a 3D rotation."""
    return _rotation_matrix(rotation, 3)[:, 2].copy()


def rotation_from_normal(normal, x_dir_hint=(1.0, 0.0, 0.0), y_dir_hint=(0.0, 1.0, 0.0)) -> np.ndarray:
    """Rotation matrix whose z-axis is ``normal``, guided by the axis hints."""
    normal = _vector(normal, 3, "normal")
    x_hint = _vector(x_dir_hint, 3, "x_dir_hint")
    y_hint = _vector(y_dir_hint, 3, "y_dir_hint")
    if x_hint @ y_hint >= EPSILON:
        raise ValueError(
            f"xDirHint ({x_hint.tolist()}) and yDirHint ({y_hint.tolist()}) must be perpendicular."
        )
    x_sq, y_sq, n_sq = x_hint @ x_hint, y_hint @ y_hint, normal @ normal
    for name, vec, sq in (("x_dir_hint", x_hint, x_sq), ("y_dir_hint", y_hint, y_sq), ("normal", normal, n_sq)):
        if sq <= EPSILON:
            raise ValueError(f"{name} {vec.tolist()} is too close to zero")

    if abs(x_sq - 1) > EPSILON:
        x_hint = x_hint / np.sqrt(x_sq)
    if abs(y_sq - 1) > EPSILON:
        y_hint = y_hint / np.sqrt(y_sq)
    z = normal / np.sqrt(n_sq) if abs(n_sq - 1) > EPSILON else normal.copy()

    if abs(z @ x_hint) < abs(z @ y_hint):
        y = np.cross(z, x_hint)
        y /= np.linalg.norm(y)
        x = np.cross(y, z)
    else:
        x = np.cross(y_hint, z)
        x /= np.linalg.norm(x)
        y = np.cross(z, x)
    basis = np.column_stack((x, y, z))
    det = np.linalg.det(basis)
    if abs(det - 1) >= EPSILON:
        raise ValueError(f"Determinant of basis is not 1, but {det}. Basis is \n{basis}\n")
    return basis


def so3_from_normal(normal) -> SO3:
    return SO3(rotation_from_normal(normal))


def line_from_se2(rotation, translation) -> Hyperplane:
    """Line defined by the x-axis of a 2D pose."""
    return Hyperplane.through(normal_from_so2(rotation), _vector(translation, 2, "translation"))


def se2_from_line(line: Hyperplane) -> tuple[np.ndarray, np.ndarray]:
    """2D pose (rotation matrix, translation) whose x-axis is the line."""
    d = line.offset
    n = line.normal
    return so2_from_normal(n), -d * n


def plane_from_se3(pose: SE3) -> Hyperplane:
    """Plane defined by the xy-plane of a 3D pose."""
    return Hyperplane.through(normal_from_so3(pose.rotation), pose.translation)


def se3_from_plane(plane: Hyperplane) -> SE3:
    """3D pose whose xy-plane is the given plane."""
    d = plane.offset
    n = plane.normal
    return SE3(so3_from_normal(n), -d * n)


def make_hyperplane_unique(plane: Hyperplane) -> Hyperplane:
    """Representation of the hyperplane with a non-negative offset."""
    if plane.offset >= 0:
        return plane
    return Hyperplane(-plane.normal, -plane.offset)