"""Rotation and rigid-body transformation groups SO(3) and SE(3)."""

from __future__ import annotations

import math

import numpy as np

_EPS = 1e-10
_ORTHO_TOL = 1e-8


def _vec(v, size: int, name: str = "vector") -> np.ndarray:
    arr = np.asarray(v, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    return arr


def _normalized(q) -> np.ndarray:
    q = np.asarray(q, dtype=float)
    n = np.linalg.norm(q)
    if n < _EPS:
        raise ValueError("quaternion must not be zero")
    return q / n


def _qmul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    w1, x1, y1, z1 = a
    w2, x2, y2, z2 = b
    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ]
    )


def _apply(matrix: np.ndarray, offset: np.ndarray, points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.shape == (3,):
        return matrix @ arr + offset
    if arr.ndim == 2 and arr.shape[0] == 3:
        return matrix @ arr + offset[:, None]
    raise ValueError(f"points must have shape (3,) or (3, N), got {arr.shape}")


def quaternion_to_matrix(w, x, y, z) -> np.ndarray:
    """Rotation matrix of the quaternion (w, x, y, z), normalized first."""
    w, x, y, z = _normalized([w, x, y, z])
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ]
    )


def matrix_to_quaternion(r) -> np.ndarray:
    """Quaternion (w, x, y, z) of a rotation matrix."""
    m = np.asarray(r, dtype=float)
    if m.shape != (3, 3):
        raise ValueError("rotation matrix must be 3x3")
    q = np.zeros(4)
    t = float(m[0, 0] + m[1, 1] + m[2, 2])
    if t > 0:
        t = math.sqrt(t + 1.0)
        q[0] = 0.5 * t
        t = 0.5 / t
        q[1] = (m[2, 1] - m[1, 2]) * t
        q[2] = (m[0, 2] - m[2, 0]) * t
        q[3] = (m[1, 0] - m[0, 1]) * t
    else:
        i = 0
        if m[1, 1] > m[0, 0]:
            i = 1
        if m[2, 2] > m[i, i]:
            i = 2
        j = (i + 1) % 3
        k = (j + 1) % 3
        t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
        q[1 + i] = 0.5 * t
        t = 0.5 / t
        q[0] = (m[k, j] - m[j, k]) * t
        q[1 + j] = (m[j, i] + m[i, j]) * t
        q[1 + k] = (m[k, i] + m[i, k]) * t
    return q


def angle_axis_matrix(angle, axis) -> np.ndarray:
    """Rotation matrix for a rotation of ``angle`` radians about ``axis``."""
    a = _vec(axis, 3, "axis")
    n = np.linalg.norm(a)
    if n < _EPS:
        raise ValueError("rotation axis must not be zero")
    a = a / n
    c, s = math.cos(angle), math.sin(angle)
    return c * np.eye(3) + s * SO3.hat(a) + (1 - c) * np.outer(a, a)


def euler_angles_zyx(r) -> np.ndarray:
    """Yaw, pitch and roll of a rotation matrix (Z-Y-X order), yaw in [0, pi]."""
    m = np.asarray(r, dtype=float)
    if m.shape != (3, 3):
        raise ValueError("rotation matrix must be 3x3")
    yaw = math.atan2(m[1, 0], m[0, 0])
    c2 = math.hypot(m[2, 2], m[2, 1])
    if yaw < 0:
        yaw += math.pi
        pitch = math.atan2(-m[2, 0], -c2)
    else:
        pitch = math.atan2(-m[2, 0], c2)
    s1, c1 = math.sin(yaw), math.cos(yaw)
    roll = math.atan2(s1 * m[0, 2] - c1 * m[1, 2], c1 * m[1, 1] - s1 * m[0, 1])
    return np.array([yaw, pitch, roll])


class SO3:
    """A 3D rotation, stored as a unit quaternion."""

    __slots__ = ("_q",)

    def __init__(self, matrix=None):
        if matrix is None:
            self._q = np.array([1.0, 0.0, 0.0, 0.0])
            return
        r = np.asarray(matrix, dtype=float)
        if r.shape != (3, 3):
            raise ValueError("rotation matrix must be 3x3")
        if np.linalg.norm(r @ r.T - np.eye(3)) > _ORTHO_TOL or np.linalg.det(r) <= 0:
            raise ValueError("matrix is not a rotation matrix")
        self._q = _normalized(matrix_to_quaternion(r))

    @classmethod
    def _from_q(cls, q) -> "SO3":
        obj = cls.__new__(cls)
        obj._q = _normalized(q)
        return obj

    @classmethod
    def from_quaternion(cls, w, x, y, z) -> "SO3":
        return cls._from_q([w, x, y, z])

    @classmethod
    def exp(cls, omega) -> "SO3":
        w = _vec(omega, 3, "omega")
        theta_sq = float(w @ w)
        theta = math.sqrt(theta_sq)
        if theta < _EPS:
            theta_po4 = theta_sq * theta_sq
            imag = 0.5 - theta_sq / 48.0 + theta_po4 / 3840.0
            real = 1.0 - theta_sq / 8.0 + theta_po4 / 384.0
        else:
            half = 0.5 * theta
            imag = math.sin(half) / theta
            real = math.cos(half)
        return cls._from_q(np.concatenate(([real], imag * w)))

    def log(self) -> np.ndarray:
        w = self._q[0]
        v = self._q[1:]
        squared_n = float(v @ v)
        if squared_n < _EPS * _EPS:
            coeff = 2.0 / w - (2.0 / 3.0) * squared_n / (w * w * w)
        else:
            n = math.sqrt(squared_n)
            if abs(w) < _EPS:
                coeff = math.pi / n if w > 0 else -math.pi / n
            else:
                coeff = 2.0 * math.atan(n / w) / n
        return coeff * v

    @staticmethod
    def hat(omega) -> np.ndarray:
        x, y, z = _vec(omega, 3, "omega")
        return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])

    @staticmethod
    def vee(m) -> np.ndarray:
        a = np.asarray(m, dtype=float)
        if a.shape != (3, 3):
            raise ValueError("matrix must be 3x3")
        return np.array([a[2, 1], a[0, 2], a[1, 0]])

    def matrix(self) -> np.ndarray:
        return quaternion_to_matrix(*self._q)

    def inverse(self) -> "SO3":
        return SO3._from_q(self._q * np.array([1.0, -1.0, -1.0, -1.0]))

    def unit_quaternion(self) -> np.ndarray:
        """The quaternion as (w, x, y, z)."""
        return self._q.copy()

    def __mul__(self, other):
        if isinstance(other, SO3):
            return SO3._from_q(_qmul(self._q, other._q))
        return _apply(self.matrix(), np.zeros(3), other)

    def __repr__(self) -> str:
        return f"SO3(quaternion={self._q.tolist()})"


class SE3:
    """A rigid-body transformation: rotation followed by translation."""

    __slots__ = ("rotation", "translation")

    def __init__(self, rotation=None, translation=None):
        if rotation is None:
            rotation = SO3()
        elif not isinstance(rotation, SO3):
            rotation = SO3(rotation)
        self.rotation = rotation
        self.translation = (
            np.zeros(3) if translation is None else _vec(translation, 3, "translation").copy()
        )

    @classmethod
    def from_quaternion(cls, w, x, y, z, translation=None) -> "SE3":
        return cls(SO3.from_quaternion(w, x, y, z), translation)

    @classmethod
    def exp(cls, xi) -> "SE3":
        """Exponential of a twist ordered (translation part, rotation part)."""
        v = _vec(xi, 6, "xi")
        rho, omega = v[:3], v[3:]
        so3 = SO3.exp(omega)
        theta = float(np.linalg.norm(omega))
        big_omega = SO3.hat(omega)
        omega_sq = big_omega @ big_omega
        if theta < _EPS:
            jac = np.eye(3) + 0.5 * big_omega + omega_sq / 6.0
        else:
            jac = (
                np.eye(3)
                + (1 - math.cos(theta)) / theta**2 * big_omega
                + (theta - math.sin(theta)) / theta**3 * omega_sq
            )
        return cls(so3, jac @ rho)

    def log(self) -> np.ndarray:
        omega = self.rotation.log()
        theta = float(np.linalg.norm(omega))
        big_omega = SO3.hat(omega)
        omega_sq = big_omega @ big_omega
        if theta < _EPS:
            v_inv = np.eye(3) - 0.5 * big_omega + omega_sq / 12.0
        else:
            half = 0.5 * theta
            v_inv = (
                np.eye(3)
                - 0.5 * big_omega
                + (1 - theta * math.cos(half) / (2 * math.sin(half))) / theta**2 * omega_sq
            )
        return np.concatenate((v_inv @ self.translation, omega))

    @staticmethod
    def hat(xi) -> np.ndarray:
        v = _vec(xi, 6, "xi")
        m = np.zeros((4, 4))
        m[:3, :3] = SO3.hat(v[3:])
        m[:3, 3] = v[:3]
        return m

    @staticmethod
    def vee(m) -> np.ndarray:
        a = np.asarray(m, dtype=float)
        if a.shape != (4, 4):
            raise ValueError("matrix must be 4x4")
        return np.concatenate((a[:3, 3], SO3.vee(a[:3, :3])))

    def rotation_matrix(self) -> np.ndarray:
        return self.rotation.matrix()

    def matrix(self) -> np.ndarray:
        m = np.eye(4)
        m[:3, :3] = self.rotation.matrix()
        m[:3, 3] = self.translation
        return m

    def matrix3x4(self) -> np.ndarray:
        return self.matrix()[:3, :]

    def inverse(self) -> "SE3":
        inv = self.rotation.inverse()
        return SE3(inv, -(inv.matrix() @ self.translation))

    def adjoint(self) -> np.ndarray:
        r = self.rotation.matrix()
        adj = np.zeros((6, 6))
        adj[:3, :3] = r
        adj[3:, 3:] = r
        adj[:3, 3:] = SO3.hat(self.translation) @ r
        return adj

    def unit_quaternion(self) -> np.ndarray:
        return self.rotation.unit_quaternion()

    def __mul__(self, other):
        if isinstance(other, SE3):
            return SE3(
                self.rotation * other.rotation,
                self.rotation.matrix() @ other.translation + self.translation,
            )
        return _apply(self.rotation.matrix(), self.translation, other)

    def __repr__(self) -> str:
        return (
            f"SE3(quaternion={self.rotation.unit_quaternion().tolist()}, "
            f"translation={self.translation.tolist()})"
        )


def relative_point(q1, t1, q2, t2, p1) -> np.ndarray:
    """Express a point seen from frame 1 in frame 2; poses map world to each frame."""
    t1w = SE3.from_quaternion(*q1, translation=t1)
    t2w = SE3.from_quaternion(*q2, translation=t2)
    return (t2w * t1w.inverse()) * _vec(p1, 3, "point")