"""Checks and projections for rotation matrices."""

from __future__ import annotations

import math

import numpy as np

EPSILON = 1e-10


def _square(r) -> np.ndarray:
    m = np.asarray(r, dtype=float)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError("must be a square matrix")
    if m.shape[0] < 2:
        raise ValueError("must have dimension >= 2")
    return m


def is_orthogonal(r) -> bool:
    """True if ``r`` times its transpose is the identity."""
    m = _square(r)
    return bool(np.linalg.norm(m @ m.T - np.eye(m.shape[0])) < EPSILON)


def is_scaled_orthogonal_and_positive(sr) -> bool:
    """True if ``sr`` is a positive multiple of a rotation matrix."""
    m = _square(sr)
    n = m.shape[0]
    det = np.linalg.det(m)
    if det <= 0:
        return False
    scale_sqr = det ** (2.0 / n)
    return bool(np.max(np.abs(m @ m.T - scale_sqr * np.eye(n))) < math.sqrt(EPSILON))


def make_rotation_matrix(r) -> np.ndarray:
    """The rotation matrix (orthogonal, determinant +1) closest to ``r``."""
    m = _square(r)
    u, _, vt = np.linalg.svd(m)
    d = np.linalg.det(u @ vt)
    diag = np.eye(m.shape[0])
    diag[-1, -1] = d
    return u @ diag @ vt